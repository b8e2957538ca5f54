"""
In-memory auth provider for development and tests.

Why: Resolve session tokens and apply admin user operations without a hosted
GoTrue instance. Tokens are opaque random strings mapped to a user id; the
recorded `updates` let tests assert exactly what would have been sent to the
provider (e.g. the ban duration).

Security: Only used when no Supabase project is wired. Prod-like environments
refuse to start without one (see `web.config` and `web.supabase_wiring`).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
import secrets
import time
import uuid

from .auth_provider import AuthProviderProtocol
from .domain import Identity
from .errors import ProviderRejected, Unauthenticated


def _now() -> int:
    return int(time.time())


@dataclass
class UserRecord:
    id: str
    email: str
    password: str
    ban_duration: str = "none"
    attributes: Dict[str, Any] = field(default_factory=dict)


class InMemoryAuthProvider(AuthProviderProtocol):
    def __init__(self) -> None:
        self.users: Dict[str, UserRecord] = {}
        self._sessions: Dict[str, Tuple[str, int]] = {}
        self.updates: List[Tuple[str, Dict[str, Any]]] = []

    # --- test helpers ------------------------------------------------------------

    def add_user(self, *, email: str, password: str = "secret123", user_id: Optional[str] = None) -> str:
        uid = user_id or str(uuid.uuid4())
        self.users[uid] = UserRecord(id=uid, email=email, password=password)
        return uid

    def issue_session(self, user_id: str, *, ttl_seconds: int = 3600) -> str:
        token = secrets.token_urlsafe(24)
        self._sessions[token] = (user_id, _now() + ttl_seconds)
        return token

    # --- protocol ----------------------------------------------------------------

    def get_user(self, access_token: str) -> Identity:
        entry = self._sessions.get(access_token)
        if not entry:
            raise Unauthenticated("Chưa đăng nhập")
        user_id, expires_at = entry
        if expires_at < _now():
            self._sessions.pop(access_token, None)
            raise Unauthenticated("Chưa đăng nhập")
        user = self.users.get(user_id)
        if user is None:
            raise Unauthenticated("Chưa đăng nhập")
        return Identity(id=user.id, email=user.email)

    def create_user(self, *, email: str, password: str) -> str:
        if any(u.email == email for u in self.users.values()):
            raise ProviderRejected("A user with this email address has already been registered")
        return self.add_user(email=email, password=password)

    def update_user(self, user_id: str, attributes: Dict[str, Any]) -> None:
        user = self.users.get(user_id)
        if user is None:
            raise ProviderRejected("User not found")
        self.updates.append((user_id, dict(attributes)))
        if "password" in attributes:
            user.password = str(attributes["password"])
        if "ban_duration" in attributes:
            user.ban_duration = str(attributes["ban_duration"])

    def delete_user(self, user_id: str) -> None:
        if self.users.pop(user_id, None) is None:
            raise ProviderRejected("User not found")
        for token, (uid, _) in list(self._sessions.items()):
            if uid == user_id:
                self._sessions.pop(token, None)

    def list_users(self) -> List[Dict[str, Optional[str]]]:
        return [{"id": u.id, "email": u.email} for u in self.users.values()]


__all__ = ["InMemoryAuthProvider", "UserRecord"]
