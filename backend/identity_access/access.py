"""
Access decisions for the OSCE API.

Rules (evaluated in order):
    1. Score reads are limited to {admin, grader}; every other role, including
       `Role.UNKNOWN`, is denied regardless of scope.
    2. `admin` is always allowed for score reads and admin management.
    3. `grader` is allowed for score reads only when a scope row exists and its
       `station_id` exactly equals the requested station.
    4. Admin-management endpoints are reachable by `admin` only.
    5. A profile currently holding `admin` cannot be edited through this API,
       whatever the caller's role.

The functions here are pure; they never touch the store.
"""
from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional

from .domain import Role, StationScope
from .errors import Forbidden

DEFAULT_BAN_HOURS = 720
UNBAN_DURATION = "none"

MSG_NO_PERMISSION = "Không có quyền"
MSG_NO_STATION_SCOPE = "Không có scope trạm"
MSG_ADMIN_IMMUTABLE = "Không cho chỉnh sửa tài khoản admin"


class Decision(Enum):
    ALLOW = "allow"
    DENY_ROLE = "deny_role"
    DENY_SCOPE = "deny_scope"


def decide_score_access(role: Role, scope: Optional[StationScope], station_id: str) -> Decision:
    if role is Role.ADMIN:
        return Decision.ALLOW
    if role is Role.GRADER:
        if scope is not None and scope.station_id == station_id:
            return Decision.ALLOW
        return Decision.DENY_SCOPE
    if role in (Role.UPLOADER, Role.ASSIGNER, Role.SCORE_VIEWER, Role.UNKNOWN):
        return Decision.DENY_ROLE
    raise AssertionError(f"unhandled role: {role!r}")


def ensure_score_access(role: Role, scope: Optional[StationScope], station_id: str) -> None:
    """Raise `Forbidden` unless `decide_score_access` allows the request."""
    decision = decide_score_access(role, scope, station_id)
    if decision is Decision.DENY_ROLE:
        raise Forbidden(MSG_NO_PERMISSION)
    if decision is Decision.DENY_SCOPE:
        raise Forbidden(MSG_NO_STATION_SCOPE)


def require_roles(role: Role, allowed: Iterable[Role]) -> None:
    if role is Role.UNKNOWN or role not in set(allowed):
        raise Forbidden(MSG_NO_PERMISSION)


def require_admin(role: Role) -> None:
    require_roles(role, (Role.ADMIN,))


def ensure_profile_editable(current_role: object) -> None:
    """Reject edits of a profile whose stored role is admin."""
    if isinstance(current_role, str) and current_role.strip().lower() == Role.ADMIN.value:
        raise Forbidden(MSG_ADMIN_IMMUTABLE)


def ban_duration(active: bool, ban_hours: object = None) -> str:
    """Translate an activate/deactivate request into a provider ban duration.

    The provider only understands ns/us/ms/s/m/h, so deactivation is always
    expressed in hours; anything but a positive number falls back to 720h.
    """
    if active:
        return UNBAN_DURATION
    hours = DEFAULT_BAN_HOURS
    if isinstance(ban_hours, (int, float)) and not isinstance(ban_hours, bool) and ban_hours > 0:
        hours = ban_hours
    if isinstance(hours, float) and hours.is_integer():
        hours = int(hours)
    return f"{hours}h"


__all__ = [
    "DEFAULT_BAN_HOURS",
    "Decision",
    "MSG_ADMIN_IMMUTABLE",
    "MSG_NO_PERMISSION",
    "MSG_NO_STATION_SCOPE",
    "ban_duration",
    "decide_score_access",
    "ensure_profile_editable",
    "ensure_score_access",
    "require_admin",
    "require_roles",
]
