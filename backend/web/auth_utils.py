"""
Shared authentication utilities for route handlers.

Why:
    Every API group needs the same three steps: read the identity resolved by
    the session middleware, look up the caller's role, and apply a role gate.
    Keeping them here avoids each router re-implementing (and drifting on)
    the "no profile means forbidden" rule.

Design:
    Helpers raise the typed errors from `identity_access.errors`; the app-wide
    exception handler turns them into envelopes.
"""

from __future__ import annotations

from fastapi import Request

from identity_access.access import MSG_NO_PERMISSION, require_roles
from identity_access.domain import Identity, Role
from identity_access.errors import Forbidden, NotFound, Unauthenticated
from identity_access.lookup import lookup_role

from web.supabase_wiring import get_store


def cookie_opts(environment: str) -> dict:
    """Return hardened cookie flags.

    `secure` is relaxed only for local development over plain http; SameSite
    stays "lax" so top-level navigations keep sending the cookie.
    """
    return {"secure": environment != "dev", "samesite": "lax", "httponly": True}


def current_identity(request: Request) -> Identity:
    identity = getattr(request.state, "identity", None)
    if not isinstance(identity, Identity):
        raise Unauthenticated("Chưa đăng nhập")
    return identity


def caller_role(request: Request) -> Role:
    """Role of the current caller; a missing profile is an authorization failure."""
    identity = current_identity(request)
    try:
        return lookup_role(get_store(), identity.id)
    except NotFound as exc:
        raise Forbidden(MSG_NO_PERMISSION) from exc


def require_role(request: Request, *allowed: Role) -> Identity:
    """Return the caller's identity if its role is one of `allowed`."""
    identity = current_identity(request)
    require_roles(caller_role(request), allowed)
    return identity
