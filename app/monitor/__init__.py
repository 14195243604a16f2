from app.monitor.client import AccountsMonitorClient, MonitorAuthRequired, MonitorFetchError
from app.monitor.config import MonitorConfig, get_monitor_config, load_monitor_config, save_monitor_config
from app.monitor.view import MonitorFilters, MonitorView, ViewPhase, filter_accounts

__all__ = [
    "AccountsMonitorClient",
    "MonitorAuthRequired",
    "MonitorConfig",
    "MonitorFetchError",
    "MonitorFilters",
    "MonitorView",
    "ViewPhase",
    "filter_accounts",
    "get_monitor_config",
    "load_monitor_config",
    "save_monitor_config",
]
