"""
Rubric API routes: duplication and the UI role-hint cookie.

Permissions:
    - Duplication: `admin` or `uploader`.
    - Role hint: any authenticated caller. The `role` cookie only steers the
      UI; access decisions always re-read the role from `profiles`.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel, ConfigDict

from identity_access.domain import Role
from osce.services.rubrics import RubricsService

from web import config
from web.auth_utils import cookie_opts, current_identity, require_role
from web.responses import ok
from web.supabase_wiring import get_store

rubrics_router = APIRouter(prefix="/api/rubrics", tags=["Rubrics"])

ROLE_COOKIE_NAME = "role"
ROLE_COOKIE_MAX_AGE = 8 * 60 * 60


class DuplicateBody(BaseModel):
    model_config = ConfigDict(extra="ignore")

    source_id: Any = None
    target: Optional[Dict[str, Any]] = None


class RoleHintBody(BaseModel):
    model_config = ConfigDict(extra="ignore")

    role: Any = None


@rubrics_router.post("/duplicate")
async def duplicate_rubric(request: Request, payload: DuplicateBody):
    """Copy a rubric (with `target` overrides) and all of its items.

    If the items cannot be copied the new rubric is kept and `warn` is set.
    """
    require_role(request, Role.ADMIN, Role.UPLOADER)
    result = RubricsService(get_store()).duplicate(payload.source_id, payload.target)
    return ok(warn=result.warn, new_id=result.new_id, item_count=result.item_count)


@rubrics_router.post("/duplicate/set-role")
async def set_role_hint(request: Request, payload: RoleHintBody):
    current_identity(request)
    response = ok()
    flags = cookie_opts(config.environment())
    if not payload.role:
        response.delete_cookie(
            ROLE_COOKIE_NAME, path="/", secure=flags["secure"], httponly=True, samesite=flags["samesite"]
        )
        return response
    response.set_cookie(
        key=ROLE_COOKIE_NAME,
        value=str(payload.role),
        max_age=ROLE_COOKIE_MAX_AGE,
        path="/",
        secure=flags["secure"],
        httponly=flags["httponly"],
        samesite=flags["samesite"],
    )
    return response
