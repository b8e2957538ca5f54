"""
Identity domain constants and simple helpers.

Why:
- Centralize the role vocabulary so web routes, services and access decisions
  cannot drift apart.
- Stored role strings are never trusted as-is: they are parsed into a closed
  enum, and anything unrecognized becomes `Role.UNKNOWN`, which no rule allows.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Role(str, Enum):
    ADMIN = "admin"
    GRADER = "grader"
    UPLOADER = "uploader"
    ASSIGNER = "assigner"
    SCORE_VIEWER = "score_viewer"
    UNKNOWN = "unknown"


# Roles that may be stored on a profile. UNKNOWN is a parse result only.
ALLOWED_ROLES = frozenset(r.value for r in Role if r is not Role.UNKNOWN)


def parse_role(raw: object) -> Role:
    """Map a stored role value to `Role`; unrecognized values map to UNKNOWN."""
    if not isinstance(raw, str):
        return Role.UNKNOWN
    value = raw.strip().lower()
    if value not in ALLOWED_ROLES:
        return Role.UNKNOWN
    return Role(value)


@dataclass(frozen=True)
class Identity:
    """Authenticated caller as issued by the auth provider."""

    id: str
    email: Optional[str] = None


@dataclass(frozen=True)
class StationScope:
    """The single station/chain pair a grader is restricted to."""

    station_id: str
    chain_id: Optional[str] = None

    def as_dict(self) -> dict:
        return {"station_id": self.station_id, "chain_id": self.chain_id}


__all__ = ["Role", "ALLOWED_ROLES", "parse_role", "Identity", "StationScope"]
