"""Data store interface for the OSCE admin surface.

Every method is a single call against the hosted store. Implementations raise
`identity_access.errors.Dependency` when the store fails; "row absent" is
reported as `None` (or an empty list), never as an error.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple


Row = Dict[str, Any]

PROFILE_COLUMNS = "user_id, role, display_name, is_active, password_last_admin_set_at"


class OsceStoreProtocol(Protocol):
    """Repository contract expected by the OSCE services."""

    # --- profiles ---------------------------------------------------------------

    def get_profile(self, user_id: str) -> Optional[Row]: ...

    def list_profiles(self) -> List[Row]: ...

    def update_profile(self, user_id: str, fields: Row) -> Optional[Row]: ...

    def upsert_profile(self, row: Row) -> None: ...

    def delete_profile(self, user_id: str) -> None: ...

    # --- station scopes ---------------------------------------------------------

    def get_scope(self, user_id: str) -> Optional[Row]: ...

    def insert_scope(self, row: Row) -> None: ...

    def update_scope(self, user_id: str, fields: Row) -> None: ...

    def upsert_scope(self, row: Row) -> None: ...

    def delete_scope(self, user_id: str) -> None: ...

    # --- graders ----------------------------------------------------------------

    def count_graders_named(
        self, last_name: str, first_name: str, email: Optional[str], *, exclude_id: Optional[str] = None
    ) -> int: ...

    def get_grader(self, grader_id: str) -> Optional[Row]: ...

    def insert_grader(self, row: Row) -> None: ...

    def update_grader(self, grader_id: str, fields: Row) -> None: ...

    def delete_grader(self, grader_id: str) -> None: ...

    def list_graders(
        self, *, search: str, sort_by: str, ascending: bool, offset: int, limit: int
    ) -> Tuple[List[Row], int]: ...

    # --- reference data ---------------------------------------------------------

    def list_chains(self) -> List[Row]: ...

    def list_stations(self) -> List[Row]: ...

    def find_station_by_name(self, name: str) -> Optional[Row]: ...

    def list_levels(self) -> List[Row]: ...

    def list_cohorts(self) -> List[Row]: ...

    def get_exam_session(self, exam_session_id: str) -> Optional[Row]: ...

    # --- scores -----------------------------------------------------------------

    def get_score(self, exam_session_id: str, station_id: str) -> Optional[Row]: ...

    def list_graded_session_ids(self, exam_round_id: str, station_id: str) -> List[str]: ...

    def insert_score(self, row: Row) -> None: ...

    def update_score(self, exam_session_id: str, station_id: str, row: Row) -> None: ...

    # --- rubrics ----------------------------------------------------------------

    def get_rubric(self, rubric_id: str) -> Optional[Row]: ...

    def insert_rubric(self, row: Row) -> Row: ...

    def list_rubric_items(self, rubric_id: str) -> List[Row]: ...

    def insert_rubric_items(self, rows: Sequence[Row]) -> None: ...

    # --- students ---------------------------------------------------------------

    def upsert_students(self, rows: Sequence[Row]) -> None: ...


__all__ = ["Row", "PROFILE_COLUMNS", "OsceStoreProtocol"]
