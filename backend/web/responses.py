"""Envelope helpers: every API response is `{ok, error?, warn?, ...payload}` and never cached."""
from __future__ import annotations

from typing import Any, Optional

from fastapi.responses import JSONResponse

PRIVATE_HEADERS = {"Cache-Control": "private, no-store"}


def json_private(payload: Any, *, status_code: int = 200) -> JSONResponse:
    return JSONResponse(content=payload, status_code=status_code, headers=dict(PRIVATE_HEADERS))


def ok(warn: Optional[str] = None, **payload: Any) -> JSONResponse:
    body = {"ok": True, **payload}
    if warn:
        body["warn"] = warn
    return json_private(body)


def error(message: str, *, status_code: int) -> JSONResponse:
    return json_private({"ok": False, "error": message}, status_code=status_code)
