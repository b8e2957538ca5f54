"""Role and station-scope lookups for an authenticated identity."""
from __future__ import annotations

from typing import Any, Optional

from .domain import Role, StationScope, parse_role
from .errors import NotFound


def lookup_role(store: Any, user_id: str) -> Role:
    """Return the caller's role from its profile row.

    Raises `NotFound` when no profile exists; unknown stored values come back
    as `Role.UNKNOWN` rather than being coerced to a weaker role.
    """
    profile = store.get_profile(user_id)
    if not profile:
        raise NotFound("role-not-found")
    return parse_role(profile.get("role"))


def lookup_scope(store: Any, user_id: str) -> Optional[StationScope]:
    """Return the identity's station scope, or None when none is assigned.

    Store failures propagate as `Dependency`; an absent row is not an error.
    """
    row = store.get_scope(user_id)
    if not row or not row.get("station_id"):
        return None
    return StationScope(station_id=row["station_id"], chain_id=row.get("chain_id"))


__all__ = ["lookup_role", "lookup_scope"]
