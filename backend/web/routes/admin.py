"""
Admin management API routes (accounts, graders, station scopes, reference lists).

Why:
    Provide the administrator surface over the hosted auth provider and the
    store. Handlers are thin: validation and multi-step sequencing live in the
    `osce.services` layer; this module wires request bodies to services and
    shapes envelopes.

Permissions:
    Every route in this router requires the caller's profile role to be
    `admin`. The gate runs as a router dependency, before any resource access,
    so non-admin callers never receive partial results.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict
from pydantic.functional_validators import field_validator

from identity_access.domain import Role
from osce.services.accounts import AccountsService, GraderScopeRequest
from osce.services.graders import DEFAULT_PAGE_SIZE, GraderInput, GradersService
from osce.services.scopes import ScopesService

from web.auth_utils import require_role
from web.responses import ok
from web.supabase_wiring import get_auth_provider, get_store

logger = logging.getLogger("osce.web.admin")


def _require_admin(request: Request) -> None:
    require_role(request, Role.ADMIN)


admin_router = APIRouter(prefix="/api/admin", tags=["Admin"], dependencies=[Depends(_require_admin)])


def _accounts() -> AccountsService:
    return AccountsService(get_store(), get_auth_provider())


def _graders() -> GradersService:
    return GradersService(get_store())


def _scopes() -> ScopesService:
    return ScopesService(get_store())


# --- Request models ----------------------------------------------------------------


class _Body(BaseModel):
    model_config = ConfigDict(extra="ignore")


class UserIdBody(_Body):
    user_id: Any = None


class CreateUserBody(_Body):
    email: Any = None
    password: Any = None
    role: Any = None
    display_name: Any = None
    grader_id: Any = None
    chain_id: Any = None
    station_id: Any = None
    station_code: Any = None
    level_id: Any = None

    @field_validator("email", mode="before")
    @classmethod
    def _strip_email(cls, v):
        return v.strip() if isinstance(v, str) else v


class GraderBody(_Body):
    id: Any = None
    last_name: Any = None
    first_name: Any = None
    email: Any = None
    phone: Any = None


class UpdateUserBody(_Body):
    user_id: Any = None
    role: Any = None
    display_name: Any = None


class ToggleActiveBody(_Body):
    user_id: Any = None
    active: Any = None
    ban_hours: Any = None


class ResetPasswordBody(_Body):
    user_id: Any = None
    new_password: Any = None


class StationScopeBody(_Body):
    user_id: Any = None
    station_id: Any = None
    chain_id: Any = None


# --- Accounts ----------------------------------------------------------------------


@admin_router.post("/create-user")
async def create_user(payload: CreateUserBody):
    scope = GraderScopeRequest(
        chain_id=payload.chain_id,
        station_id=payload.station_id,
        station_code=payload.station_code,
        level_id=payload.level_id,
    )
    user_id = _accounts().create_account(
        email=payload.email,
        password=payload.password,
        role=payload.role,
        display_name=payload.display_name,
        grader_id=payload.grader_id,
        scope=scope,
    )
    return ok(user_id=user_id)


@admin_router.get("/list-profiles")
async def list_profiles():
    return ok(profiles=_accounts().list_profiles())


@admin_router.post("/update-user")
async def update_user(payload: UpdateUserBody):
    """Change role and/or display name. Profiles holding `admin` are immutable (403)."""
    fields = {k: getattr(payload, k) for k in ("role", "display_name") if k in payload.model_fields_set}
    profile = _accounts().update_profile(payload.user_id, **fields)
    return ok(profile=profile)


@admin_router.post("/toggle-active")
async def toggle_active(payload: ToggleActiveBody):
    """Ban/unban at the auth provider, then mirror the state into `profiles.is_active`.

    The flag write is secondary: if it fails the response is still `ok` with `warn`.
    """
    outcome = _accounts().set_active(payload.user_id, payload.active, payload.ban_hours)
    return ok(warn=outcome.warn)


@admin_router.post("/reset-password")
async def reset_password(payload: ResetPasswordBody):
    outcome = _accounts().reset_password(payload.user_id, payload.new_password)
    return ok(warn=outcome.warn)


@admin_router.delete("/delete-user")
async def delete_user(payload: UserIdBody):
    """Hard-delete the auth user, then clean up its profile and scope rows (best effort)."""
    outcome = _accounts().delete_account(payload.user_id)
    return ok(warn=outcome.warn)


@admin_router.get("/list-users")
async def list_users():
    return ok(users=_accounts().list_auth_users())


# --- Graders -----------------------------------------------------------------------


@admin_router.post("/create-grader")
async def create_grader(payload: GraderBody):
    data = GraderInput.from_raw(
        last_name=payload.last_name, first_name=payload.first_name, email=payload.email, phone=payload.phone
    )
    _graders().create(data)
    return ok()


@admin_router.post("/update-grader")
async def update_grader(payload: GraderBody):
    service = _graders()
    service.require_id(payload.id)
    data = GraderInput.from_raw(
        last_name=payload.last_name, first_name=payload.first_name, email=payload.email, phone=payload.phone
    )
    service.update(payload.id, data)
    return ok()


@admin_router.delete("/delete-grader")
async def delete_grader(payload: GraderBody):
    _graders().delete(payload.id)
    return ok()


def _int_param(raw: Optional[str], default: int) -> int:
    try:
        return int(raw) if raw not in (None, "") else default
    except ValueError:
        return default


@admin_router.get("/list-graders")
async def list_graders(
    search: str = "",
    sortBy: str = "last_name",
    sortDir: str = "asc",
    page: Optional[str] = None,
    pageSize: Optional[str] = None,
):
    result = _graders().list(
        search=search,
        sort_by=sortBy,
        sort_dir=sortDir,
        page=_int_param(page, 1),
        page_size=_int_param(pageSize, DEFAULT_PAGE_SIZE),
    )
    return ok(graders=result.graders, total=result.total)


# --- Station scopes & reference lists ----------------------------------------------


@admin_router.post("/set-station-scope")
async def set_station_scope(payload: StationScopeBody):
    _scopes().assign(payload.user_id, payload.station_id, payload.chain_id)
    return ok()


@admin_router.post("/get-station-scope")
async def get_station_scope(payload: UserIdBody):
    return ok(scope=_scopes().get(payload.user_id))


@admin_router.post("/clear-station-scope")
async def clear_station_scope(payload: UserIdBody):
    _scopes().clear(payload.user_id)
    return ok()


@admin_router.get("/list-chains")
async def list_chains():
    return ok(chains=get_store().list_chains())


@admin_router.get("/list-stations")
async def list_stations():
    return ok(stations=get_store().list_stations())
