"""
Configuration and startup security checks for the OSCE admin API.

Why: Every data operation runs with the Supabase Service Role key, so a
misconfigured production deployment is a privilege problem, not just an
outage. This module provides a single guard that enforces minimal production
safety constraints without burdening local development.

Permissions: The caller needs no special privileges. The function simply reads
environment variables and raises `SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

import os

_DUMMY_KEYS = {"DUMMY_DO_NOT_USE", "CHANGE_ME"}


def environment() -> str:
    return (os.getenv("OSCE_ENV", "dev") or "dev").strip().lower()


def is_prod_like(env: str | None = None) -> bool:
    env_l = (environment() if env is None else env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def supabase_url() -> str:
    return (os.getenv("SUPABASE_URL") or "").strip()


def service_role_key() -> str:
    return (os.getenv("SUPABASE_SERVICE_ROLE_KEY") or "").strip()


def supabase_configured() -> bool:
    return bool(supabase_url() and service_role_key())


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Checks (prod/staging only):
    - SUPABASE_URL must be set and use https.
    - SUPABASE_SERVICE_ROLE_KEY must be set and not a known placeholder.
    """
    if not is_prod_like():
        return  # dev/test remain permissive

    url = supabase_url()
    if not url:
        raise SystemExit("Refusing to start: SUPABASE_URL is unset in production.")
    if not url.lower().startswith("https://"):
        raise SystemExit("Refusing to start: SUPABASE_URL must use https in production.")

    key = service_role_key()
    if not key or key.upper() in _DUMMY_KEYS or key.upper().startswith("CHANGE_ME"):
        raise SystemExit(
            "Refusing to start: SUPABASE_SERVICE_ROLE_KEY is unset or a dummy placeholder in production."
        )


__all__ = [
    "ensure_secure_config_on_startup",
    "environment",
    "is_prod_like",
    "service_role_key",
    "supabase_configured",
    "supabase_url",
]
