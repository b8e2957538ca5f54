"""
Account administration: profiles, activation, passwords, deletion, creation.

Why:
    Account state is split between the hosted auth provider (credentials, ban
    state) and the `profiles` table (role, display name, active flag,
    bookkeeping timestamps). Writes touching both are ordered sequences of
    independent calls; there is no cross-call transaction.

Behavior:
    - The auth provider call is the primary effect. If it fails the request
      fails and nothing else is attempted.
    - Profile bookkeeping after a successful primary effect is secondary: a
      failure there is returned as `warn` and logged, never rolled back.
    - Profiles whose stored role is admin cannot be edited here.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from identity_access.access import ban_duration, ensure_profile_editable
from identity_access.auth_provider import AuthProviderProtocol
from identity_access.domain import ALLOWED_ROLES, Identity, Role, parse_role
from identity_access.errors import Dependency, InvalidInput, NotFound

from osce.store import PROFILE_COLUMNS, OsceStoreProtocol

logger = logging.getLogger("osce.accounts")

MSG_USER_ID_REQUIRED = "Thiếu user_id"
MSG_USER_NOT_FOUND = "Không tìm thấy user"
MSG_NOTHING_TO_UPDATE = "Không có trường nào để cập nhật"
MSG_INVALID_ROLE = "Role không hợp lệ"
MSG_TOGGLE_REQUIRED = "Thiếu user_id hoặc active (boolean)"
MSG_RESET_REQUIRED = "Thiếu user_id hoặc new_password"
MSG_CREATE_REQUIRED = "Thiếu email/password/role"
MSG_CHAIN_REQUIRED = "Thiếu chain_id (Chuỗi bắt buộc)."
MSG_STATION_REQUIRED = (
    "Thiếu station_id (Trạm bắt buộc). Vui lòng chọn trạm hoặc seed A–F trong bảng stations."
)
MSG_SELF_PASSWORD_INVALID = "Mật khẩu mới không hợp lệ (tối thiểu 6 ký tự)."
MIN_SELF_PASSWORD_LENGTH = 6

_PROFILE_FIELDS = tuple(c.strip() for c in PROFILE_COLUMNS.split(","))
_UNSET = object()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class StepOutcome:
    """Result of a multi-step write: the primary effect succeeded; `warnings` holds secondary failures."""

    warnings: List[str] = field(default_factory=list)

    @property
    def warn(self) -> Optional[str]:
        return "; ".join(self.warnings) if self.warnings else None

    def secondary(self, step: str, action: Callable[[], Any]) -> None:
        try:
            action()
        except Dependency as exc:
            logger.warning("Secondary step failed step=%s: %s", step, exc.message)
            self.warnings.append(exc.message)


@dataclass
class GraderScopeRequest:
    chain_id: Any = None
    station_id: Any = None
    station_code: Any = None
    level_id: Any = None


@dataclass
class AccountsService:
    store: OsceStoreProtocol
    auth: AuthProviderProtocol

    # --- profiles ----------------------------------------------------------------

    def list_profiles(self) -> List[Dict[str, Any]]:
        return self.store.list_profiles()

    def update_profile(self, user_id: Any, *, role: object = _UNSET, display_name: object = _UNSET) -> Dict[str, Any]:
        if not user_id:
            raise InvalidInput(MSG_USER_ID_REQUIRED)
        uid = str(user_id)
        current = self.store.get_profile(uid)
        if not current:
            raise NotFound(MSG_USER_NOT_FOUND)
        ensure_profile_editable(current.get("role"))

        payload: Dict[str, Any] = {}
        if role is not _UNSET:
            parsed = parse_role(role)
            if parsed is Role.UNKNOWN:
                raise InvalidInput(MSG_INVALID_ROLE)
            payload["role"] = parsed.value
        if display_name is not _UNSET:
            payload["display_name"] = display_name if display_name is None else str(display_name)
        if not payload:
            raise InvalidInput(MSG_NOTHING_TO_UPDATE)

        updated = self.store.update_profile(uid, payload)
        if updated is None:
            raise NotFound(MSG_USER_NOT_FOUND)
        logger.info("Profile updated user_id=%s fields=%s", uid, ",".join(sorted(payload)))
        return {k: updated.get(k) for k in _PROFILE_FIELDS}

    # --- activation & passwords --------------------------------------------------

    def set_active(self, user_id: Any, active: Any, ban_hours: Any = None) -> StepOutcome:
        if not user_id or not isinstance(active, bool):
            raise InvalidInput(MSG_TOGGLE_REQUIRED)
        uid = str(user_id)
        self.auth.update_user(uid, {"ban_duration": ban_duration(active, ban_hours)})
        outcome = StepOutcome()
        outcome.secondary("profile_active_flag", lambda: self.store.update_profile(uid, {"is_active": active}))
        logger.info("Account %s user_id=%s", "activated" if active else "deactivated", uid)
        return outcome

    def reset_password(self, user_id: Any, new_password: Any) -> StepOutcome:
        if not user_id or not new_password:
            raise InvalidInput(MSG_RESET_REQUIRED)
        uid = str(user_id)
        self.auth.update_user(uid, {"password": str(new_password)})
        outcome = StepOutcome()
        outcome.secondary(
            "password_admin_timestamp",
            lambda: self.store.update_profile(uid, {"password_last_admin_set_at": _now_iso()}),
        )
        logger.info("Password reset by admin user_id=%s", uid)
        return outcome

    def change_own_password(self, identity: Identity, new_password: Any) -> StepOutcome:
        if not isinstance(new_password, str) or len(new_password) < MIN_SELF_PASSWORD_LENGTH:
            raise InvalidInput(MSG_SELF_PASSWORD_INVALID)
        self.auth.update_user(identity.id, {"password": new_password})
        outcome = StepOutcome()
        outcome.secondary(
            "password_self_timestamp",
            lambda: self.store.update_profile(identity.id, {"password_last_self_set_at": _now_iso()}),
        )
        return outcome

    # --- deletion ------------------------------------------------------------------

    def delete_account(self, user_id: Any) -> StepOutcome:
        if not user_id:
            raise InvalidInput(MSG_USER_ID_REQUIRED)
        uid = str(user_id)
        self.auth.delete_user(uid)
        outcome = StepOutcome()
        outcome.secondary("profile_cleanup", lambda: self.store.delete_profile(uid))
        outcome.secondary("scope_cleanup", lambda: self.store.delete_scope(uid))
        logger.info("Account deleted user_id=%s", uid)
        return outcome

    # --- creation --------------------------------------------------------------------

    def _resolve_grader_scope(self, req: GraderScopeRequest) -> Dict[str, Any]:
        if not req.chain_id:
            raise InvalidInput(MSG_CHAIN_REQUIRED)
        station_id = req.station_id or None
        if not station_id and req.station_code:
            station = self.store.find_station_by_name(str(req.station_code).upper())
            station_id = station.get("id") if station else None
        if not station_id:
            raise InvalidInput(MSG_STATION_REQUIRED)
        scope: Dict[str, Any] = {"chain_id": req.chain_id, "station_id": station_id}
        if req.level_id not in (None, ""):
            scope["level_id"] = req.level_id
        if req.station_code not in (None, ""):
            scope["station_code"] = req.station_code
        return scope

    def create_account(
        self,
        *,
        email: Any,
        password: Any,
        role: Any,
        display_name: Any = None,
        grader_id: Any = None,
        scope: Optional[GraderScopeRequest] = None,
    ) -> str:
        if not email or not password or not role:
            raise InvalidInput(MSG_CREATE_REQUIRED)
        parsed = parse_role(role)
        if parsed.value not in ALLOWED_ROLES:
            raise InvalidInput(MSG_INVALID_ROLE)

        # Resolve the grader scope before touching the auth provider so that a
        # rejected request leaves no orphaned auth user behind.
        scope_row: Optional[Dict[str, Any]] = None
        if parsed is Role.GRADER:
            scope_row = self._resolve_grader_scope(scope or GraderScopeRequest())

        user_id = self.auth.create_user(email=str(email), password=str(password))
        self.store.upsert_profile(
            {
                "user_id": user_id,
                "role": parsed.value,
                "grader_id": grader_id or None,
                "display_name": display_name or str(email),
                "is_active": True,
            }
        )
        if scope_row is not None:
            self.store.upsert_scope({"user_id": user_id, **scope_row})
        logger.info("Account created user_id=%s role=%s", user_id, parsed.value)
        return user_id

    def list_auth_users(self) -> List[Dict[str, Optional[str]]]:
        return self.auth.list_users()


__all__ = [
    "AccountsService",
    "GraderScopeRequest",
    "StepOutcome",
    "MSG_SELF_PASSWORD_INVALID",
]
