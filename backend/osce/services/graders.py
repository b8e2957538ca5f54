"""Grader directory service: CRUD with duplicate detection and paged listing."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from identity_access.errors import Conflict, InvalidInput

from osce.store import OsceStoreProtocol

logger = logging.getLogger("osce.graders")

MSG_NAME_REQUIRED = "Họ và Tên là bắt buộc"
MSG_ID_REQUIRED = "Thiếu id"
MSG_DUPLICATE = "Đã tồn tại giám khảo trùng Họ, Tên và Email."

SORTABLE_COLUMNS = ("last_name", "first_name", "email", "phone", "created_at")
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def _clean_optional(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class GraderInput:
    last_name: str
    first_name: str
    email: Optional[str] = None
    phone: Optional[str] = None

    @classmethod
    def from_raw(cls, *, last_name: Any, first_name: Any, email: Any = None, phone: Any = None) -> "GraderInput":
        ln = str(last_name or "").strip()
        fn = str(first_name or "").strip()
        if not ln or not fn:
            raise InvalidInput(MSG_NAME_REQUIRED)
        return cls(last_name=ln, first_name=fn, email=_clean_optional(email), phone=_clean_optional(phone))

    def as_row(self) -> Dict[str, Any]:
        return {
            "last_name": self.last_name,
            "first_name": self.first_name,
            "email": self.email,
            "phone": self.phone,
        }


@dataclass
class GraderPage:
    graders: List[Dict[str, Any]]
    total: int


@dataclass
class GradersService:
    store: OsceStoreProtocol

    @staticmethod
    def require_id(grader_id: Any) -> str:
        if not grader_id:
            raise InvalidInput(MSG_ID_REQUIRED)
        return str(grader_id)

    def _ensure_unique(self, data: GraderInput, *, exclude_id: Optional[str] = None) -> None:
        # A missing email only collides with other missing emails.
        count = self.store.count_graders_named(
            data.last_name, data.first_name, data.email, exclude_id=exclude_id
        )
        if count > 0:
            raise Conflict(MSG_DUPLICATE)

    def create(self, data: GraderInput) -> None:
        self._ensure_unique(data)
        self.store.insert_grader(data.as_row())
        logger.info("Grader created")

    def update(self, grader_id: Any, data: GraderInput) -> None:
        gid = self.require_id(grader_id)
        self._ensure_unique(data, exclude_id=gid)
        self.store.update_grader(gid, data.as_row())
        logger.info("Grader updated id=%s", gid)

    def delete(self, grader_id: Any) -> None:
        gid = self.require_id(grader_id)
        self.store.delete_grader(gid)
        logger.info("Grader deleted id=%s", gid)

    def list(
        self,
        *,
        search: str = "",
        sort_by: str = "last_name",
        sort_dir: str = "asc",
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> GraderPage:
        column, ascending, offset, limit = normalize_listing(sort_by, sort_dir, page, page_size)
        rows, total = self.store.list_graders(
            search=(search or "").strip(),
            sort_by=column,
            ascending=ascending,
            offset=offset,
            limit=limit,
        )
        return GraderPage(graders=rows, total=total)


def normalize_listing(sort_by: str, sort_dir: str, page: int, page_size: int) -> Tuple[str, bool, int, int]:
    """Clamp listing parameters into a safe `(column, ascending, offset, limit)`."""
    column = sort_by if sort_by in SORTABLE_COLUMNS else "last_name"
    ascending = (sort_dir or "asc").lower() != "desc"
    page = max(1, page)
    limit = max(1, min(MAX_PAGE_SIZE, page_size))
    return column, ascending, (page - 1) * limit, limit


__all__ = [
    "GraderInput",
    "GraderPage",
    "GradersService",
    "MSG_DUPLICATE",
    "SORTABLE_COLUMNS",
    "normalize_listing",
]
