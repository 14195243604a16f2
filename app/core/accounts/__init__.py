from app.core.accounts.classifier import ClassifiableAccount, classify, is_recovery_pending
from app.core.accounts.metadata import metadata_email, metadata_last_refresh
from app.core.accounts.registry import AccountRegistry, InMemoryAccountRegistry, RegistrySyncResult
from app.core.accounts.types import AccountError, AccountRecord, MonitorState, QuotaState

__all__ = [
    "AccountError",
    "AccountRecord",
    "AccountRegistry",
    "ClassifiableAccount",
    "InMemoryAccountRegistry",
    "MonitorState",
    "QuotaState",
    "RegistrySyncResult",
    "classify",
    "is_recovery_pending",
    "metadata_email",
    "metadata_last_refresh",
]
