from __future__ import annotations

from typing import TypedDict


class ManagementErrorDetail(TypedDict):
    code: str
    message: str


class ManagementErrorEnvelope(TypedDict):
    error: ManagementErrorDetail


def management_error(code: str, message: str) -> ManagementErrorEnvelope:
    return {"error": {"code": code, "message": message}}
