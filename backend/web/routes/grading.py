"""
Grading API routes: score lookup, graded-session listing and score saving.

Permissions:
    Callers must be `admin` or `grader`. A grader is additionally limited to
    the single station in its scope row (exact match), see
    `identity_access.access.decide_score_access`.
"""
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel, ConfigDict

from osce.services.grading import GradingService

from web.auth_utils import current_identity
from web.responses import ok
from web.supabase_wiring import get_store

grading_router = APIRouter(prefix="/api/grading", tags=["Grading"])


class GetScoreBody(BaseModel):
    model_config = ConfigDict(extra="ignore")

    exam_session_id: Any = None
    station_id: Any = None


class SaveScoreBody(BaseModel):
    model_config = ConfigDict(extra="ignore")

    exam_session_id: Any = None
    station_id: Any = None
    level_id: Any = None
    cohort_id: Any = None
    exam_round_id: Any = None
    student_id: Any = None
    grader_id: Any = None
    item_scores: Any = None
    total_score: Any = None
    comment: Any = None
    global_rating: Any = None


def _service() -> GradingService:
    return GradingService(get_store())


@grading_router.post("/get-score")
async def get_score(request: Request, payload: GetScoreBody):
    identity = current_identity(request)
    score = _service().get_score(identity.id, payload.exam_session_id, payload.station_id)
    return ok(score=score)


@grading_router.get("/list-graded")
async def list_graded(request: Request, exam_round_id: Optional[str] = None, station_id: Optional[str] = None):
    identity = current_identity(request)
    ids = _service().list_graded(identity.id, exam_round_id, station_id)
    return ok(exam_session_ids=ids)


@grading_router.post("/save-score")
async def save_score(request: Request, payload: SaveScoreBody):
    """Insert a first score or regrade an existing one; every save re-locks regrading."""
    identity = current_identity(request)
    result = _service().save_score(identity.id, payload.model_dump())
    return ok(**result)
