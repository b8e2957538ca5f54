"""
Process-global Supabase wiring for the data store and the auth provider.

Why:
    The service-role client is created once and shared by every request; it
    is never recreated per request and never handed to unprivileged code. Both
    adapters (PostgREST store, GoTrue admin) wrap that single client.

Behavior:
    - `wire_supabase_if_configured()` is idempotent. Without SUPABASE_URL and
      SUPABASE_SERVICE_ROLE_KEY, or when the client cannot be created, it
      leaves the in-memory adapters in place (development/tests) and logs a
      warning. In prod-like environments a client failure aborts startup.
    - Tests swap adapters via `set_store` / `set_auth_provider`.

Security:
    Requires SUPABASE_SERVICE_ROLE_KEY and SUPABASE_URL environment variables.
    No secrets are logged or exposed to clients.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from identity_access.auth_provider import AuthProviderProtocol, SupabaseAuthProvider
from identity_access.stores import InMemoryAuthProvider
from osce.store import OsceStoreProtocol
from osce.store_memory import InMemoryOsceStore
from osce.store_supabase import SupabaseOsceStore

from web import config as _cfg

logger = logging.getLogger("osce.web")

_CLIENT: Any = None
_STORE: Optional[OsceStoreProtocol] = None
_AUTH: Optional[AuthProviderProtocol] = None


def _create_client(url: str, key: str) -> Any:
    from supabase import ClientOptions, create_client

    options = ClientOptions(persist_session=False, auto_refresh_token=False)
    return create_client(url, key, options=options)


def wire_supabase_if_configured() -> bool:
    """Create the service client and adapters once; return True when Supabase is wired."""
    global _CLIENT, _STORE, _AUTH
    if _CLIENT is not None:
        return True
    if not _cfg.supabase_configured():
        logger.warning("Supabase not configured; using in-memory store and auth provider")
        return False
    try:
        client = _create_client(_cfg.supabase_url(), _cfg.service_role_key())
    except Exception as exc:
        if _cfg.is_prod_like():
            raise SystemExit(f"Refusing to start: Supabase client unavailable ({exc.__class__.__name__}).") from exc
        logger.warning("Supabase client unavailable: %s", exc.__class__.__name__)
        return False
    _CLIENT = client
    _STORE = SupabaseOsceStore(client)
    _AUTH = SupabaseAuthProvider(client)
    logger.info("Supabase adapters wired")
    return True


def get_store() -> OsceStoreProtocol:
    global _STORE
    if _STORE is None:
        _STORE = InMemoryOsceStore()
    return _STORE


def get_auth_provider() -> AuthProviderProtocol:
    global _AUTH
    if _AUTH is None:
        _AUTH = InMemoryAuthProvider()
    return _AUTH


def set_store(store: Optional[OsceStoreProtocol]) -> None:
    """Allow tests to swap the data store implementation."""
    global _STORE
    _STORE = store


def set_auth_provider(provider: Optional[AuthProviderProtocol]) -> None:
    """Allow tests to swap the auth provider implementation."""
    global _AUTH
    _AUTH = provider


__all__ = [
    "get_auth_provider",
    "get_store",
    "set_auth_provider",
    "set_store",
    "wire_supabase_if_configured",
]
