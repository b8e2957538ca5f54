"""Rubric scoring helpers and rubric duplication."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional

from identity_access.errors import Dependency, InvalidInput, NotFound

from osce.store import OsceStoreProtocol

logger = logging.getLogger("osce.rubrics")

_FILENAME_UNSAFE = re.compile(r'[\\/:*?"<>|]')
# Columns the store assigns itself; never copied onto a duplicate.
_GENERATED_COLUMNS = ("id", "created_at", "updated_at")
TARGET_FIELDS = ("level_id", "cohort_id", "exam_round_id", "station_id", "name")

MSG_SOURCE_REQUIRED = "Thiếu source_id"
MSG_SOURCE_NOT_FOUND = "Không tìm thấy rubric nguồn"


def _as_score(value: Any) -> float:
    if isinstance(value, bool):
        return float(value)
    try:
        score = float(value)
    except (TypeError, ValueError):
        return 0.0
    return score if score == score else 0.0  # NaN -> 0


def max_item_score(item: Mapping[str, Any]) -> float:
    """Highest score among an item's levels; non-numeric scores count as 0."""
    levels = item.get("levels") or {}
    values = levels.values() if isinstance(levels, Mapping) else levels
    scores = [_as_score(lv.get("score")) if isinstance(lv, Mapping) else 0.0 for lv in values]
    return max(scores) if scores else 0.0


def max_total_score(items: Iterable[Mapping[str, Any]]) -> float:
    return sum(max_item_score(it) for it in items)


def build_rubric_filename(
    *,
    level_name: Optional[str] = None,
    cohort_year: Optional[int] = None,
    round_no: Optional[int] = None,
    station_name: Optional[str] = None,
    task_name: Optional[str] = None,
) -> str:
    """Deterministic export name, e.g. `Y4_2025_Round1_Station-A_Task`."""
    parts = [
        level_name if level_name is not None else "Level",
        str(cohort_year) if cohort_year is not None else "Year",
        f"Round{round_no}" if isinstance(round_no, int) and not isinstance(round_no, bool) else "Round",
        f"Station-{station_name}" if station_name else "Station",
        task_name if task_name is not None else "Task",
    ]
    return _FILENAME_UNSAFE.sub("-", "_".join(parts))


@dataclass
class DuplicateResult:
    new_id: str
    item_count: int
    warn: Optional[str] = None


@dataclass
class RubricsService:
    store: OsceStoreProtocol

    def duplicate(self, source_id: Any, target: Optional[Mapping[str, Any]] = None) -> DuplicateResult:
        """Copy a rubric and all of its items, applying `target` overrides.

        The rubric row is the primary effect. If copying the items fails the
        new rubric stays in place and the failure is reported as `warn`.
        """
        if not source_id:
            raise InvalidInput(MSG_SOURCE_REQUIRED)
        source = self.store.get_rubric(str(source_id))
        if source is None:
            raise NotFound(MSG_SOURCE_NOT_FOUND)

        row: Dict[str, Any] = {k: v for k, v in source.items() if k not in _GENERATED_COLUMNS}
        for key in TARGET_FIELDS:
            value = (target or {}).get(key)
            if value not in (None, ""):
                row[key] = value
        # Read the items before writing anything so a failed read leaves no copy behind.
        source_items = self.store.list_rubric_items(str(source_id))
        created = self.store.insert_rubric(row)
        new_id = str(created["id"])

        items = [
            {**{k: v for k, v in item.items() if k not in _GENERATED_COLUMNS}, "rubric_id": new_id}
            for item in source_items
        ]
        try:
            self.store.insert_rubric_items(items)
        except Dependency as exc:
            logger.warning("Rubric items not copied new_id=%s: %s", new_id, exc.message)
            return DuplicateResult(new_id=new_id, item_count=0, warn=exc.message)
        logger.info("Rubric duplicated source_id=%s new_id=%s items=%d", source_id, new_id, len(items))
        return DuplicateResult(new_id=new_id, item_count=len(items))


__all__ = [
    "DuplicateResult",
    "RubricsService",
    "build_rubric_filename",
    "max_item_score",
    "max_total_score",
]
