"""
Session resolver: inbound cookies -> authenticated `Identity`.

Why:
    The hosted auth provider issues the session as a cookie (optionally split
    into `<name>.0`, `<name>.1`, ... chunks and base64-encoded). The API only
    needs the access token inside it; validating that token is delegated to the
    provider.

Behavior:
    - Read-only. Never sets or clears cookies.
    - Missing cookie, undecodable value or provider rejection -> `Unauthenticated`.
"""
from __future__ import annotations

import base64
import binascii
import json
import os
from typing import Mapping, Optional
from urllib.parse import urlparse

from .auth_provider import AuthProviderProtocol
from .domain import Identity
from .errors import Unauthenticated

DEFAULT_COOKIE_NAME = "sb-access-token"
_BASE64_PREFIX = "base64-"
_MAX_CHUNKS = 16


def session_cookie_name() -> str:
    """Cookie carrying the session: explicit override, else derived from the project URL."""
    override = (os.getenv("OSCE_SESSION_COOKIE") or "").strip()
    if override:
        return override
    url = (os.getenv("SUPABASE_URL") or "").strip()
    host = urlparse(url).hostname or ""
    ref = host.split(".")[0] if host else ""
    if ref:
        return f"sb-{ref}-auth-token"
    return DEFAULT_COOKIE_NAME


def read_cookie_value(cookies: Mapping[str, str], name: str) -> Optional[str]:
    """Return the cookie value, merging `<name>.N` chunks in order when present."""
    value = cookies.get(name)
    if value:
        return value
    parts = []
    for i in range(_MAX_CHUNKS):
        chunk = cookies.get(f"{name}.{i}")
        if chunk is None:
            break
        parts.append(chunk)
    return "".join(parts) or None


def extract_access_token(raw: str) -> Optional[str]:
    """Unwrap the stored session payload down to the access token."""
    value = raw.strip()
    if value.startswith(_BASE64_PREFIX):
        encoded = value[len(_BASE64_PREFIX):]
        try:
            padded = encoded + "=" * (-len(encoded) % 4)
            value = base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")
        except (binascii.Error, UnicodeError, ValueError):
            return None
    if value[:1] in ("{", "["):
        try:
            data = json.loads(value)
        except ValueError:
            return None
        if isinstance(data, dict):
            token = data.get("access_token")
        elif isinstance(data, list) and data:
            token = data[0]
        else:
            token = None
        return token if isinstance(token, str) and token else None
    return value or None


class SessionResolver:
    def __init__(self, provider: AuthProviderProtocol, cookie_name: Optional[str] = None) -> None:
        self._provider = provider
        self._cookie_name = cookie_name

    @property
    def cookie_name(self) -> str:
        return self._cookie_name or session_cookie_name()

    def resolve(self, cookies: Mapping[str, str]) -> Identity:
        raw = read_cookie_value(cookies, self.cookie_name)
        if not raw:
            raise Unauthenticated("Chưa đăng nhập")
        token = extract_access_token(raw)
        if not token:
            raise Unauthenticated("Chưa đăng nhập")
        return self._provider.get_user(token)


__all__ = [
    "DEFAULT_COOKIE_NAME",
    "SessionResolver",
    "extract_access_token",
    "read_cookie_value",
    "session_cookie_name",
]
