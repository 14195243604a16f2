from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from app.core.accounts.metadata import metadata_email
from app.core.accounts.registry import InMemoryAccountRegistry
from app.core.accounts.types import AccountRecord
from app.core.utils.time import UTC

logger = logging.getLogger(__name__)


class ProviderAuthFile(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    provider: str = Field(alias="type", min_length=1)
    label: str | None = None
    disabled: bool = False


def load_auth_file(path: Path) -> AccountRecord | None:
    try:
        raw = path.read_text(encoding="utf-8")
        modified_at = datetime.fromtimestamp(path.stat().st_mtime, tz=UTC)
        data = json.loads(raw)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError):
        logger.warning("Skipping unreadable auth file path=%s", path.name)
        return None
    if not isinstance(data, dict):
        logger.warning("Skipping auth file with non-object payload path=%s", path.name)
        return None
    try:
        auth = ProviderAuthFile.model_validate(data)
    except ValidationError:
        logger.warning("Skipping auth file without provider type path=%s", path.name)
        return None

    label = (auth.label or "").strip() or metadata_email(data) or path.stem
    return AccountRecord(
        id=path.name,
        provider=auth.provider.strip().lower(),
        label=label,
        status="disabled" if auth.disabled else "active",
        disabled=auth.disabled,
        metadata=data,
        created_at=modified_at,
        updated_at=modified_at,
    )


def load_auth_dir(auth_dir: Path) -> list[AccountRecord]:
    records: list[AccountRecord] = []
    for path in sorted(auth_dir.glob("*.json")):
        if not path.is_file():
            continue
        record = load_auth_file(path)
        if record is not None:
            records.append(record)
    return records


def build_registry_from_auth_dir(auth_dir: Path) -> InMemoryAccountRegistry | None:
    if not auth_dir.is_dir():
        logger.warning("Auth directory not found; account registry unavailable auth_dir=%s", auth_dir)
        return None
    records = load_auth_dir(auth_dir)
    logger.info("Loaded accounts from auth directory count=%s auth_dir=%s", len(records), auth_dir)
    return InMemoryAccountRegistry(records)
