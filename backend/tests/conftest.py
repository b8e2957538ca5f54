"""
Pytest configuration for backend tests.

Why: Force AnyIO to use the asyncio backend and give every test a fresh
in-memory store and auth provider, so no test ever reaches a hosted Supabase
project and state cannot leak between tests.
"""
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import pytest

# Tests always run against the in-memory adapters.
for _var in ("SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY", "OSCE_ENV", "OSCE_SESSION_COOKIE"):
    os.environ.pop(_var, None)

# Ensure modules in backend/ are importable across tests
REPO_ROOT = Path(__file__).resolve().parents[2]
BACKEND_DIR = REPO_ROOT / "backend"
TESTS_DIR = BACKEND_DIR / "tests"
for p in (str(BACKEND_DIR), str(TESTS_DIR)):
    if p not in sys.path:
        sys.path.insert(0, p)

from identity_access.session import session_cookie_name  # noqa: E402
from identity_access.stores import InMemoryAuthProvider  # noqa: E402
from osce.store_memory import InMemoryOsceStore  # noqa: E402
from web import supabase_wiring  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


@dataclass
class World:
    """In-memory backend plus helpers to create signed-in callers."""

    store: InMemoryOsceStore
    auth: InMemoryAuthProvider

    def add_account(self, role: Optional[str], *, user_id: Optional[str] = None, email: Optional[str] = None,
                    grader_id: Optional[str] = None) -> str:
        uid = self.auth.add_user(email=email or f"{role or 'nobody'}-{len(self.auth.users)}@osce.test", user_id=user_id)
        if role is not None:
            self.store.profiles[uid] = {
                "user_id": uid,
                "role": role,
                "display_name": role,
                "is_active": True,
                "grader_id": grader_id,
                "password_last_admin_set_at": None,
            }
        return uid

    def login(self, role: Optional[str], **kwargs) -> str:
        """Create an account with `role` and return a session cookie value for it."""
        uid = self.add_account(role, **kwargs)
        return self.auth.issue_session(uid)

    def cookies_for(self, token: str) -> dict:
        return {session_cookie_name(): token}


@pytest.fixture(autouse=True)
def world(monkeypatch: pytest.MonkeyPatch):
    """Fresh adapters per test; also clears env toggles that may leak across tests."""
    for var in ("OSCE_ENV", "OSCE_SESSION_COOKIE", "SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY"):
        monkeypatch.delenv(var, raising=False)
    store = InMemoryOsceStore()
    auth = InMemoryAuthProvider()
    supabase_wiring.set_store(store)
    supabase_wiring.set_auth_provider(auth)
    yield World(store=store, auth=auth)
    supabase_wiring.set_store(None)
    supabase_wiring.set_auth_provider(None)
