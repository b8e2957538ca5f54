"""
Student roster API routes: xlsx template download, upload preview, commit.

Permissions:
    Callers must be `admin` or `uploader`.

Security:
    Uploads are capped at 5 MB and restricted to spreadsheet content types
    before the workbook is opened.
"""
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, File, Request, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel, ConfigDict

from identity_access.domain import Role
from osce.services.students import (
    MAX_UPLOAD_BYTES,
    TEMPLATE_FILENAME,
    XLSX_CONTENT_TYPE,
    StudentsService,
    build_template,
)

from web.auth_utils import require_role
from web.responses import PRIVATE_HEADERS, ok
from web.supabase_wiring import get_store

students_router = APIRouter(tags=["Students"])


class CommitBody(BaseModel):
    model_config = ConfigDict(extra="ignore")

    rows: Any = None


def _service() -> StudentsService:
    return StudentsService(get_store())


def _require_uploader(request: Request) -> None:
    require_role(request, Role.ADMIN, Role.UPLOADER)


@students_router.get("/api/template/students")
async def student_template(request: Request):
    _require_uploader(request)
    headers = {
        **PRIVATE_HEADERS,
        "Content-Disposition": f"attachment; filename={TEMPLATE_FILENAME}",
    }
    return Response(content=build_template(), media_type=XLSX_CONTENT_TYPE, headers=headers)


@students_router.post("/api/upload-students")
async def upload_students(request: Request, file: Optional[UploadFile] = File(default=None)):
    """Parse and validate an uploaded roster without writing anything."""
    _require_uploader(request)
    content: Optional[bytes] = None
    content_type: Optional[str] = None
    if file is not None:
        # Read one byte past the cap so oversize files are detected without buffering them whole.
        content = await file.read(MAX_UPLOAD_BYTES + 1)
        content_type = file.content_type
    result = _service().parse_upload(content, content_type)
    return ok(
        rows=result.rows,
        errors=[e.as_dict() for e in result.errors],
        ready=result.ready,
        total=len(result.rows),
        error_count=len(result.errors),
    )


@students_router.post("/api/upload-students/commit")
async def commit_students(request: Request, payload: CommitBody):
    _require_uploader(request)
    count = _service().commit(payload.rows)
    return ok(count=count)
