"""
OSCE admin API application.

Why:
    Single FastAPI app serving the admin, grading, roster and rubric API. All
    data operations run through the process-global Supabase service client
    (see `web.supabase_wiring`).

Request flow:
    session middleware (cookie -> Identity) -> router role gate / access
    decision -> service -> envelope. Typed errors raised anywhere below the
    middleware are mapped to `{ok: false, error}` by one exception handler.
"""
from __future__ import annotations

import logging
import os
import sys

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from identity_access.errors import OsceError, Unauthenticated
from identity_access.session import SessionResolver

from web import config
from web.responses import PRIVATE_HEADERS, error
from web.routes.admin import admin_router
from web.routes.grading import grading_router
from web.routes.me import me_router
from web.routes.rubrics import rubrics_router
from web.routes.students import students_router
from web.supabase_wiring import get_auth_provider, wire_supabase_if_configured


def _should_load_dotenv() -> bool:
    """Decide if we should load a local .env file.

    - Never load under pytest to avoid contaminating test env.
    - Allow explicit opt-out via OSCE_ENABLE_DOTENV (default true outside pytest).
    """
    if "pytest" in sys.modules or os.getenv("PYTEST_CURRENT_TEST"):
        return False
    flag = (os.getenv("OSCE_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


if _should_load_dotenv():
    load_dotenv()

# Fail fast on insecure production configuration.
config.ensure_secure_config_on_startup()

logger = logging.getLogger("osce.web")

app = FastAPI(title="OSCE Admin API", description="Quản trị kỳ thi OSCE", version="0.1.0")

wire_supabase_if_configured()


# --- Session & Security Middleware ---------------------------------------------


def _is_public_path(path: str) -> bool:
    return not path.startswith("/api/")


@app.middleware("http")
async def auth_enforcement(request: Request, call_next):
    """Resolve the caller for every `/api/` request; 401 envelope when there is no valid session."""
    if _is_public_path(request.url.path):
        return await call_next(request)
    resolver = SessionResolver(get_auth_provider())
    try:
        request.state.identity = resolver.resolve(request.cookies)
    except Unauthenticated as exc:
        return error(exc.message, status_code=exc.status_code)
    return await call_next(request)


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    if config.is_prod_like():
        response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
    return response


# --- Error envelopes -------------------------------------------------------------


@app.exception_handler(OsceError)
async def osce_error_handler(request: Request, exc: OsceError):
    if exc.status_code >= 500:
        logger.warning("Request failed path=%s: %s", request.url.path, exc.message)
    return error(exc.message, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return error("Dữ liệu không hợp lệ", status_code=400)


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled error path=%s: %s", request.url.path, exc.__class__.__name__)
    return error("Lỗi không xác định", status_code=500)


# --- Routes ------------------------------------------------------------------------


@app.get("/health")
async def health():
    return JSONResponse({"status": "ok"}, headers=dict(PRIVATE_HEADERS))


app.include_router(admin_router)
app.include_router(grading_router)
app.include_router(me_router)
app.include_router(rubrics_router)
app.include_router(students_router)
