"""
Score reads and saves, gated by role and station scope.

Permissions:
    - Reads: admin always; grader only for its exact scope station.
    - Saves: same role gate, plus for graders the grader identity on the
      profile, the chain of the exam session, and the regrade lock.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from identity_access.access import MSG_NO_STATION_SCOPE, ensure_score_access, require_roles
from identity_access.domain import Role
from identity_access.errors import Dependency, Forbidden, InvalidInput, NotFound
from identity_access.lookup import lookup_role, lookup_scope

from osce.store import OsceStoreProtocol

logger = logging.getLogger("osce.grading")

GLOBAL_RATINGS = ("Fail", "Pass", "Good", "Excellent")
REQUIRED_SCORE_FIELDS = (
    "exam_session_id",
    "station_id",
    "level_id",
    "cohort_id",
    "exam_round_id",
    "student_id",
    "grader_id",
    "total_score",
    "global_rating",
)

MSG_GET_REQUIRED = "Thiếu exam_session_id hoặc station_id"
MSG_LIST_REQUIRED = "Thiếu exam_round_id hoặc station_id"
MSG_NO_PERMISSION = "Không có quyền"
MSG_GRADER_MISMATCH = "Sai grader_id so với profile"
MSG_GRADER_UNKNOWN = "grader_id không tồn tại"
MSG_CHAIN_MISMATCH = "Phiên thi không thuộc chuỗi trong scope"
MSG_SCORE_LOCKED = "Bản điểm đã khóa, cần admin mở regrade"
MSG_INVALID_RATING = "global_rating không hợp lệ"
MSG_INVALID_STATION = "station_id không hợp lệ"


def _ensure_station_text(station_id: Any) -> None:
    # Station ids are compared by strict equality; a JSON number never matches a stored id.
    if not isinstance(station_id, str):
        raise InvalidInput(MSG_INVALID_STATION)


@dataclass
class GradingService:
    store: OsceStoreProtocol

    def _caller_role(self, user_id: str) -> Role:
        try:
            return lookup_role(self.store, user_id)
        except NotFound as exc:
            raise Forbidden(MSG_NO_PERMISSION) from exc

    def authorize_station(self, user_id: str, station_id: str) -> Role:
        """Apply the score-read rules for `station_id`; returns the caller's role."""
        role = self._caller_role(user_id)
        scope = lookup_scope(self.store, user_id) if role is Role.GRADER else None
        ensure_score_access(role, scope, station_id)
        return role

    def get_score(self, user_id: str, exam_session_id: Any, station_id: Any) -> Optional[Dict[str, Any]]:
        if not exam_session_id or not station_id:
            raise InvalidInput(MSG_GET_REQUIRED)
        _ensure_station_text(station_id)
        self.authorize_station(user_id, station_id)
        return self.store.get_score(str(exam_session_id), station_id)

    def list_graded(self, user_id: str, exam_round_id: Any, station_id: Any) -> List[str]:
        if not exam_round_id or not station_id:
            raise InvalidInput(MSG_LIST_REQUIRED)
        _ensure_station_text(station_id)
        self.authorize_station(user_id, station_id)
        return self.store.list_graded_session_ids(str(exam_round_id), station_id)

    def _check_grader_save(self, user_id: str, payload: Dict[str, Any]) -> None:
        profile = self.store.get_profile(user_id) or {}
        own_grader_id = profile.get("grader_id")
        if own_grader_id:
            if str(own_grader_id) != str(payload["grader_id"]):
                raise Forbidden(MSG_GRADER_MISMATCH)
        elif self.store.get_grader(str(payload["grader_id"])) is None:
            raise InvalidInput(MSG_GRADER_UNKNOWN)

        scope = lookup_scope(self.store, user_id)
        if scope is None or scope.station_id != payload["station_id"]:
            raise Forbidden(MSG_NO_STATION_SCOPE)
        if scope.chain_id:
            session = self.store.get_exam_session(str(payload["exam_session_id"]))
            if not session or session.get("chain_id") != scope.chain_id:
                raise Forbidden(MSG_CHAIN_MISMATCH)

    def save_score(self, user_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Insert or overwrite the score for `(exam_session_id, station_id)`.

        Every save leaves `allow_regrade=false`; overwriting an existing score
        requires admin or a previously reopened regrade.
        """
        for key in REQUIRED_SCORE_FIELDS:
            value = payload.get(key)
            if value is None or value == "":
                raise InvalidInput(f"Thiếu trường: {key}")
        if payload["global_rating"] not in GLOBAL_RATINGS:
            raise InvalidInput(MSG_INVALID_RATING)
        _ensure_station_text(payload["station_id"])

        role = self._caller_role(user_id)
        require_roles(role, (Role.ADMIN, Role.GRADER))
        if role is Role.GRADER:
            self._check_grader_save(user_id, payload)

        exam_session_id = str(payload["exam_session_id"])
        station_id = str(payload["station_id"])
        row = {key: payload[key] for key in REQUIRED_SCORE_FIELDS}
        row["item_scores"] = payload.get("item_scores")
        row["comment"] = payload.get("comment")
        row["allow_regrade"] = False

        existing = self.store.get_score(exam_session_id, station_id)
        if existing is None:
            self._write(lambda: self.store.insert_score(row))
            logger.info("Score inserted exam_session_id=%s station_id=%s", exam_session_id, station_id)
            return {"action": "inserted"}

        if role is not Role.ADMIN and existing.get("allow_regrade") is not True:
            raise Forbidden(MSG_SCORE_LOCKED)
        self._write(lambda: self.store.update_score(exam_session_id, station_id, row))
        logger.info("Score regraded exam_session_id=%s station_id=%s", exam_session_id, station_id)
        return {"action": "updated", "locked": True}

    @staticmethod
    def _write(action: Any) -> None:
        try:
            action()
        except Dependency as exc:
            raise Dependency(f"Lưu thất bại: {exc.message}") from exc


__all__ = ["GLOBAL_RATINGS", "GradingService", "REQUIRED_SCORE_FIELDS"]
