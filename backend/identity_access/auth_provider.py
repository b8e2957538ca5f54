"""
Auth provider adapter (Supabase GoTrue admin API).

Design:
- Framework-agnostic, callable from services and the session middleware.
- Wraps a supabase client created with the Service Role key; `auth.get_user`
  validates a caller's access token, `auth.admin.*` performs privileged user
  management.
- Provider rejections are raised as `ProviderRejected` (surfaced as 400, as the
  hosted provider reports them), token failures as `Unauthenticated`.

Security:
- Do not log credentials, tokens or passwords.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol

from .domain import Identity
from .errors import ProviderRejected, Unauthenticated

logger = logging.getLogger("osce.identity_access")


class AuthProviderProtocol(Protocol):
    """Operations the admin surface needs from the hosted auth provider."""

    def get_user(self, access_token: str) -> Identity: ...

    def create_user(self, *, email: str, password: str) -> str: ...

    def update_user(self, user_id: str, attributes: Dict[str, Any]) -> None: ...

    def delete_user(self, user_id: str) -> None: ...

    def list_users(self) -> List[Dict[str, Optional[str]]]: ...


def _message(exc: BaseException) -> str:
    return str(getattr(exc, "message", None) or exc or exc.__class__.__name__)


class SupabaseAuthProvider(AuthProviderProtocol):
    def __init__(self, client: Any) -> None:
        self._client = client

    @property
    def _admin(self) -> Any:
        return self._client.auth.admin

    def get_user(self, access_token: str) -> Identity:
        try:
            res = self._client.auth.get_user(access_token)
        except Exception as exc:
            logger.warning("Session token rejected by auth provider: %s", exc.__class__.__name__)
            raise Unauthenticated("Chưa đăng nhập") from exc
        user = getattr(res, "user", None)
        uid = getattr(user, "id", None)
        if not uid:
            raise Unauthenticated("Chưa đăng nhập")
        return Identity(id=str(uid), email=getattr(user, "email", None))

    def create_user(self, *, email: str, password: str) -> str:
        try:
            res = self._admin.create_user({"email": email, "password": password, "email_confirm": True})
        except Exception as exc:
            raise ProviderRejected(_message(exc)) from exc
        uid = getattr(getattr(res, "user", None), "id", None)
        if not uid:
            raise ProviderRejected("Không lấy được user id")
        return str(uid)

    def update_user(self, user_id: str, attributes: Dict[str, Any]) -> None:
        try:
            self._admin.update_user_by_id(user_id, attributes)
        except Exception as exc:
            raise ProviderRejected(_message(exc)) from exc

    def delete_user(self, user_id: str) -> None:
        try:
            self._admin.delete_user(user_id)
        except Exception as exc:
            raise ProviderRejected(_message(exc)) from exc

    def list_users(self) -> List[Dict[str, Optional[str]]]:
        try:
            users = self._admin.list_users()
        except Exception as exc:
            raise ProviderRejected(_message(exc)) from exc
        return [{"id": str(u.id), "email": getattr(u, "email", None)} for u in (users or [])]


__all__ = ["AuthProviderProtocol", "SupabaseAuthProvider"]
