"""
Supabase-backed data store for the OSCE admin surface.

This adapter implements `OsceStoreProtocol` on top of a supabase client
created with the Service Role key (bypasses RLS). It is duck-typed on the
client: anything exposing `.table(name)` returning a PostgREST query builder
works, which keeps tests free of network access.

Security:
- The caller must ensure the client is initialized with the Service Role key
  and never handed to unprivileged code paths.
- Error messages returned by PostgREST are scrubbed and truncated before they
  reach a response envelope.
"""
from __future__ import annotations

import re
from typing import Any, List, Optional, Sequence, Tuple

from identity_access.errors import Dependency

from .store import PROFILE_COLUMNS, OsceStoreProtocol, Row

_ERROR_MAX_LENGTH = 256
_SENSITIVE_TOKEN_PATTERN = re.compile(r"(?i)(secret|token|password|key)[-_a-z0-9]*\s*=\s*\S+")
# PostgREST `or=` filter syntax uses these characters as separators.
_FILTER_UNSAFE = re.compile(r"[,()]")


def sanitize_error_message(exc: BaseException) -> str:
    """Strip secrets and truncate lengthy adapter errors for safe exposure."""
    raw = getattr(exc, "message", None) or str(exc) or exc.__class__.__name__
    collapsed = " ".join(str(raw).split())
    scrubbed = _SENSITIVE_TOKEN_PATTERN.sub("[redacted]", collapsed)
    if len(scrubbed) > _ERROR_MAX_LENGTH:
        scrubbed = scrubbed[: _ERROR_MAX_LENGTH - 3].rstrip() + "..."
    return scrubbed


class SupabaseOsceStore(OsceStoreProtocol):
    """Store adapter using a supabase client for PostgREST table access."""

    def __init__(self, client: Any):
        self._client = client

    # --- Helpers -----------------------------------------------------------------

    def _table(self, name: str) -> Any:
        return self._client.table(name)

    @staticmethod
    def _run(query: Any) -> Any:
        try:
            return query.execute()
        except Exception as exc:
            raise Dependency(sanitize_error_message(exc)) from exc

    @classmethod
    def _rows(cls, query: Any) -> List[Row]:
        res = cls._run(query)
        data = getattr(res, "data", None)
        return list(data) if isinstance(data, list) else []

    @classmethod
    def _first(cls, query: Any) -> Optional[Row]:
        rows = cls._rows(query.limit(1))
        return rows[0] if rows else None

    # --- profiles ----------------------------------------------------------------

    def get_profile(self, user_id: str) -> Optional[Row]:
        return self._first(
            self._table("profiles").select(PROFILE_COLUMNS + ", grader_id").eq("user_id", user_id)
        )

    def list_profiles(self) -> List[Row]:
        return self._rows(self._table("profiles").select(PROFILE_COLUMNS).order("role", desc=False))

    def update_profile(self, user_id: str, fields: Row) -> Optional[Row]:
        rows = self._rows(self._table("profiles").update(fields).eq("user_id", user_id))
        return rows[0] if rows else None

    def upsert_profile(self, row: Row) -> None:
        self._run(self._table("profiles").upsert(row, on_conflict="user_id"))

    def delete_profile(self, user_id: str) -> None:
        self._run(self._table("profiles").delete().eq("user_id", user_id))

    # --- station scopes ----------------------------------------------------------

    def get_scope(self, user_id: str) -> Optional[Row]:
        return self._first(
            self._table("station_account_scopes").select("user_id, station_id, chain_id").eq("user_id", user_id)
        )

    def insert_scope(self, row: Row) -> None:
        self._run(self._table("station_account_scopes").insert([row]))

    def update_scope(self, user_id: str, fields: Row) -> None:
        self._run(self._table("station_account_scopes").update(fields).eq("user_id", user_id))

    def upsert_scope(self, row: Row) -> None:
        self._run(self._table("station_account_scopes").upsert(row, on_conflict="user_id"))

    def delete_scope(self, user_id: str) -> None:
        self._run(self._table("station_account_scopes").delete().eq("user_id", user_id))

    # --- graders -----------------------------------------------------------------

    def count_graders_named(
        self, last_name: str, first_name: str, email: Optional[str], *, exclude_id: Optional[str] = None
    ) -> int:
        query = (
            self._table("graders")
            .select("id", count="exact", head=True)
            .eq("last_name", last_name)
            .eq("first_name", first_name)
        )
        if exclude_id is not None:
            query = query.neq("id", exclude_id)
        # NULL never equals NULL in SQL; absent emails are matched with IS NULL.
        query = query.is_("email", "null") if email is None else query.eq("email", email)
        res = self._run(query)
        return int(getattr(res, "count", 0) or 0)

    def get_grader(self, grader_id: str) -> Optional[Row]:
        return self._first(self._table("graders").select("id").eq("id", grader_id))

    def insert_grader(self, row: Row) -> None:
        self._run(self._table("graders").insert([row]))

    def update_grader(self, grader_id: str, fields: Row) -> None:
        self._run(self._table("graders").update(fields).eq("id", grader_id))

    def delete_grader(self, grader_id: str) -> None:
        self._run(self._table("graders").delete().eq("id", grader_id))

    def list_graders(
        self, *, search: str, sort_by: str, ascending: bool, offset: int, limit: int
    ) -> Tuple[List[Row], int]:
        term = _FILTER_UNSAFE.sub(" ", search).strip()
        pattern = f"last_name.ilike.%{term}%,first_name.ilike.%{term}%,email.ilike.%{term}%"

        count_query = self._table("graders").select("id", count="exact", head=True)
        if term:
            count_query = count_query.or_(pattern)
        total = int(getattr(self._run(count_query), "count", 0) or 0)

        data_query = self._table("graders").select("id,last_name,first_name,email,phone,created_at")
        if term:
            data_query = data_query.or_(pattern)
        rows = self._rows(data_query.order(sort_by, desc=not ascending).range(offset, offset + limit - 1))
        return rows, total

    # --- reference data ----------------------------------------------------------

    def list_chains(self) -> List[Row]:
        return self._rows(self._table("chains").select("id,name,color").order("name", desc=False))

    def list_stations(self) -> List[Row]:
        return self._rows(self._table("stations").select("id,name").order("name", desc=False))

    def find_station_by_name(self, name: str) -> Optional[Row]:
        return self._first(self._table("stations").select("id").eq("name", name))

    def list_levels(self) -> List[Row]:
        return self._rows(self._table("levels").select("*"))

    def list_cohorts(self) -> List[Row]:
        return self._rows(self._table("cohorts").select("*"))

    def get_exam_session(self, exam_session_id: str) -> Optional[Row]:
        return self._first(self._table("exam_sessions").select("id, chain_id").eq("id", exam_session_id))

    # --- scores ------------------------------------------------------------------

    def get_score(self, exam_session_id: str, station_id: str) -> Optional[Row]:
        return self._first(
            self._table("scores")
            .select("id, allow_regrade")
            .eq("exam_session_id", exam_session_id)
            .eq("station_id", station_id)
        )

    def list_graded_session_ids(self, exam_round_id: str, station_id: str) -> List[str]:
        rows = self._rows(
            self._table("scores")
            .select("exam_session_id")
            .eq("exam_round_id", exam_round_id)
            .eq("station_id", station_id)
        )
        return [r.get("exam_session_id") for r in rows]

    def insert_score(self, row: Row) -> None:
        self._run(self._table("scores").insert(row))

    def update_score(self, exam_session_id: str, station_id: str, row: Row) -> None:
        self._run(
            self._table("scores").update(row).eq("exam_session_id", exam_session_id).eq("station_id", station_id)
        )

    # --- rubrics -----------------------------------------------------------------

    def get_rubric(self, rubric_id: str) -> Optional[Row]:
        return self._first(self._table("rubrics").select("*").eq("id", rubric_id))

    def insert_rubric(self, row: Row) -> Row:
        rows = self._rows(self._table("rubrics").insert(row))
        if not rows:
            raise Dependency("rubric_insert_returned_no_row")
        return rows[0]

    def list_rubric_items(self, rubric_id: str) -> List[Row]:
        return self._rows(self._table("rubric_items").select("*").eq("rubric_id", rubric_id))

    def insert_rubric_items(self, rows: Sequence[Row]) -> None:
        if rows:
            self._run(self._table("rubric_items").insert(list(rows)))

    # --- students ----------------------------------------------------------------

    def upsert_students(self, rows: Sequence[Row]) -> None:
        self._run(self._table("students").upsert(list(rows), on_conflict="student_code"))


__all__ = ["SupabaseOsceStore", "sanitize_error_message"]
