"""
In-memory data store for development and tests.

Why: Keep the service layer runnable without a hosted Supabase project. The
semantics mirror what the PostgREST adapter observes (NULL email matching,
upsert on the conflict key, ordering), so route tests exercise the same
decisions as production.
"""
from __future__ import annotations

import copy
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import uuid4

from identity_access.errors import Dependency

from .store import PROFILE_COLUMNS, OsceStoreProtocol, Row

_PROFILE_FIELDS = tuple(c.strip() for c in PROFILE_COLUMNS.split(","))


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _pick(row: Row, fields: Sequence[str]) -> Row:
    return {f: row.get(f) for f in fields}


def _sort_key(value: Any) -> Tuple[int, Any]:
    # NULLS LAST, like Postgres ascending order.
    return (1, "") if value is None else (0, value)


class InMemoryOsceStore(OsceStoreProtocol):
    def __init__(self) -> None:
        self.profiles: Dict[str, Row] = {}
        self.scopes: Dict[str, Row] = {}
        self.graders: Dict[str, Row] = {}
        self.chains: List[Row] = []
        self.stations: List[Row] = []
        self.levels: List[Row] = []
        self.cohorts: List[Row] = []
        self.exam_sessions: Dict[str, Row] = {}
        self.scores: List[Row] = []
        self.rubrics: Dict[str, Row] = {}
        self.rubric_items: List[Row] = []
        self.students: Dict[str, Row] = {}

    # --- profiles ----------------------------------------------------------------

    def get_profile(self, user_id: str) -> Optional[Row]:
        row = self.profiles.get(user_id)
        return _pick(row, _PROFILE_FIELDS + ("grader_id",)) if row else None

    def list_profiles(self) -> List[Row]:
        rows = sorted(self.profiles.values(), key=lambda r: _sort_key(r.get("role")))
        return [_pick(r, _PROFILE_FIELDS) for r in rows]

    def update_profile(self, user_id: str, fields: Row) -> Optional[Row]:
        row = self.profiles.get(user_id)
        if row is None:
            return None
        row.update(fields)
        return copy.deepcopy(row)

    def upsert_profile(self, row: Row) -> None:
        current = self.profiles.setdefault(row["user_id"], {})
        current.update(row)

    def delete_profile(self, user_id: str) -> None:
        self.profiles.pop(user_id, None)

    # --- station scopes ----------------------------------------------------------

    def get_scope(self, user_id: str) -> Optional[Row]:
        row = self.scopes.get(user_id)
        return _pick(row, ("user_id", "station_id", "chain_id")) if row else None

    def insert_scope(self, row: Row) -> None:
        if row["user_id"] in self.scopes:
            raise Dependency('duplicate key value violates unique constraint "station_account_scopes_pkey"')
        self.scopes[row["user_id"]] = dict(row)

    def update_scope(self, user_id: str, fields: Row) -> None:
        if user_id in self.scopes:
            self.scopes[user_id].update(fields)

    def upsert_scope(self, row: Row) -> None:
        self.scopes.setdefault(row["user_id"], {}).update(row)

    def delete_scope(self, user_id: str) -> None:
        self.scopes.pop(user_id, None)

    # --- graders -----------------------------------------------------------------

    def count_graders_named(
        self, last_name: str, first_name: str, email: Optional[str], *, exclude_id: Optional[str] = None
    ) -> int:
        count = 0
        for gid, g in self.graders.items():
            if exclude_id is not None and gid == exclude_id:
                continue
            if g.get("last_name") != last_name or g.get("first_name") != first_name:
                continue
            if g.get("email") == email:
                count += 1
        return count

    def get_grader(self, grader_id: str) -> Optional[Row]:
        return {"id": grader_id} if grader_id in self.graders else None

    def insert_grader(self, row: Row) -> None:
        gid = str(row.get("id") or uuid4())
        self.graders[gid] = {**row, "id": gid, "created_at": _now_iso()}

    def update_grader(self, grader_id: str, fields: Row) -> None:
        if grader_id in self.graders:
            self.graders[grader_id].update(fields)

    def delete_grader(self, grader_id: str) -> None:
        self.graders.pop(grader_id, None)

    def list_graders(
        self, *, search: str, sort_by: str, ascending: bool, offset: int, limit: int
    ) -> Tuple[List[Row], int]:
        term = search.strip().lower()
        rows = list(self.graders.values())
        if term:
            rows = [
                g for g in rows
                if any(term in str(g.get(f) or "").lower() for f in ("last_name", "first_name", "email"))
            ]
        rows.sort(key=lambda g: _sort_key(g.get(sort_by)), reverse=not ascending)
        fields = ("id", "last_name", "first_name", "email", "phone", "created_at")
        page = [_pick(g, fields) for g in rows[offset: offset + limit]]
        return page, len(rows)

    # --- reference data ----------------------------------------------------------

    def list_chains(self) -> List[Row]:
        return sorted((dict(c) for c in self.chains), key=lambda c: _sort_key(c.get("name")))

    def list_stations(self) -> List[Row]:
        return sorted((dict(s) for s in self.stations), key=lambda s: _sort_key(s.get("name")))

    def find_station_by_name(self, name: str) -> Optional[Row]:
        for s in self.stations:
            if s.get("name") == name:
                return {"id": s["id"]}
        return None

    def list_levels(self) -> List[Row]:
        return [dict(lv) for lv in self.levels]

    def list_cohorts(self) -> List[Row]:
        return [dict(c) for c in self.cohorts]

    def get_exam_session(self, exam_session_id: str) -> Optional[Row]:
        row = self.exam_sessions.get(exam_session_id)
        return dict(row) if row else None

    # --- scores ------------------------------------------------------------------

    def _find_score(self, exam_session_id: str, station_id: str) -> Optional[Row]:
        for s in self.scores:
            if s.get("exam_session_id") == exam_session_id and s.get("station_id") == station_id:
                return s
        return None

    def get_score(self, exam_session_id: str, station_id: str) -> Optional[Row]:
        row = self._find_score(exam_session_id, station_id)
        return _pick(row, ("id", "allow_regrade")) if row else None

    def list_graded_session_ids(self, exam_round_id: str, station_id: str) -> List[str]:
        return [
            s.get("exam_session_id")
            for s in self.scores
            if s.get("exam_round_id") == exam_round_id and s.get("station_id") == station_id
        ]

    def insert_score(self, row: Row) -> None:
        self.scores.append({"id": str(uuid4()), **row})

    def update_score(self, exam_session_id: str, station_id: str, row: Row) -> None:
        existing = self._find_score(exam_session_id, station_id)
        if existing is not None:
            existing.update(row)

    # --- rubrics -----------------------------------------------------------------

    def get_rubric(self, rubric_id: str) -> Optional[Row]:
        row = self.rubrics.get(rubric_id)
        return copy.deepcopy(row) if row else None

    def insert_rubric(self, row: Row) -> Row:
        rid = str(uuid4())
        stored = {**copy.deepcopy(row), "id": rid}
        self.rubrics[rid] = stored
        return copy.deepcopy(stored)

    def list_rubric_items(self, rubric_id: str) -> List[Row]:
        return [copy.deepcopy(i) for i in self.rubric_items if i.get("rubric_id") == rubric_id]

    def insert_rubric_items(self, rows: Sequence[Row]) -> None:
        for r in rows:
            self.rubric_items.append({"id": str(uuid4()), **copy.deepcopy(r)})

    # --- students ----------------------------------------------------------------

    def upsert_students(self, rows: Sequence[Row]) -> None:
        for r in rows:
            self.students.setdefault(r["student_code"], {}).update(r)


__all__ = ["InMemoryOsceStore"]
