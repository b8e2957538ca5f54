"""
Self-service routes for the signed-in user.

Permissions:
    Any authenticated caller; acts only on the caller's own account.
"""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from pydantic import BaseModel, ConfigDict, Field

from identity_access.access import MSG_NO_PERMISSION
from identity_access.domain import Role
from identity_access.errors import Forbidden, NotFound
from identity_access.lookup import lookup_role
from osce.services.accounts import AccountsService

from web.auth_utils import current_identity
from web.responses import json_private, ok
from web.supabase_wiring import get_auth_provider, get_store

me_router = APIRouter(tags=["Me"])


class UpdatePasswordBody(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    new_password: Any = Field(default=None, alias="newPassword")


@me_router.post("/api/me/update-password")
async def update_password(request: Request, payload: UpdatePasswordBody):
    """Change the caller's own password (minimum 6 characters)."""
    identity = current_identity(request)
    outcome = AccountsService(get_store(), get_auth_provider()).change_own_password(identity, payload.new_password)
    return ok(warn=outcome.warn)


@me_router.get("/api/set-role")
async def current_role(request: Request):
    """Return the caller's normalized role, e.g. for post-login redirects.

    No profile row is 404; an unrecognized stored role is rejected with 403.
    """
    identity = current_identity(request)
    try:
        role = lookup_role(get_store(), identity.id)
    except NotFound:
        return json_private({"ok": False, "error": "role-not-found"}, status_code=404)
    if role is Role.UNKNOWN:
        raise Forbidden(MSG_NO_PERMISSION)
    return json_private({"ok": True, "role": role.value})
