from __future__ import annotations

from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, PlainSerializer

from app.core.utils.time import iso_utc


def _serialize_datetime_as_utc(value: datetime) -> str:
    # All timestamps on the management API are ISO 8601 strings in UTC with a trailing "Z".
    # tz-naive values are assumed to already be UTC (see `app/core/utils/time.py:to_utc`).
    return iso_utc(value)


UtcDateTime = Annotated[datetime, PlainSerializer(_serialize_datetime_as_utc, when_used="json")]


class ManagementModel(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
    )
