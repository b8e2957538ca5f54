"""
Student roster import: xlsx template, upload parsing and committing.

Behavior:
    - The template has one header row and one sample row.
    - Parsing validates every data row against the level/cohort reference data
      and returns rows plus per-cell errors; nothing is written.
    - Committing re-maps level/cohort ids, rejects the batch if any row is
      incomplete, then upserts on `student_code` in chunks.
"""
from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple
from zipfile import BadZipFile

from openpyxl import Workbook, load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from identity_access.errors import (
    Dependency,
    InvalidInput,
    PayloadTooLarge,
    UnsupportedMediaType,
)

from osce.store import OsceStoreProtocol, Row

logger = logging.getLogger("osce.students")

TEMPLATE_HEADERS = (
    "student_code",
    "last_name",
    "name",
    "birth_year",
    "gender",
    "level_name",
    "year",
    "group_number",
    "batch_number",
)
TEMPLATE_SAMPLE_ROW = ("SV001", "Nguyễn Văn", "An", 2001, "Nam", "Y4", 2025, 1, 1)
TEMPLATE_FILENAME = "student_template.xlsx"
XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

MAX_UPLOAD_BYTES = 5 * 1024 * 1024
ALLOWED_CONTENT_TYPES = (
    XLSX_CONTENT_TYPE,
    "application/octet-stream",
    "application/vnd.ms-excel",
)
COMMIT_CHUNK_SIZE = 500
BIRTH_YEAR_RANGE = (1980, 2010)
GENDERS = ("Nam", "Nữ")
_NUMERIC_FIELDS = ("birth_year", "year", "group_number", "batch_number")

MSG_FILE_REQUIRED = "Thiếu file"
MSG_FILE_TOO_LARGE = "File quá lớn (>5MB)"
MSG_NO_ROWS = "Không có dữ liệu để ghi"


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _to_int(text: Any) -> int:
    """Numeric cell -> int; blank or unparsable counts as 0 (i.e. missing)."""
    if isinstance(text, bool):
        return 0
    if isinstance(text, int):
        return text
    try:
        number = float(str(text).strip() or 0)
    except ValueError:
        return 0
    return int(number) if number.is_integer() else 0


@dataclass
class RowError:
    row: int
    column: str
    message: str

    def as_dict(self) -> Dict[str, Any]:
        return {"row": self.row, "column": self.column, "message": self.message}


@dataclass
class ParseResult:
    rows: List[Row] = field(default_factory=list)
    errors: List[RowError] = field(default_factory=list)

    @property
    def ready(self) -> bool:
        return not self.errors


class ReferenceMaps:
    """Level name -> id and `(year, level_id)` -> cohort id lookups."""

    def __init__(self, levels: Sequence[Row], cohorts: Sequence[Row]) -> None:
        self.levels = {str(lv.get("name") or "").strip(): lv.get("id") for lv in levels}
        self.cohorts = {(_to_int(c.get("year")), str(c.get("level_id"))): c.get("id") for c in cohorts}

    def level_id(self, level_name: Any) -> Optional[Any]:
        return self.levels.get(str(level_name or "").strip())

    def cohort_id(self, year: Any, level_id: Any) -> Optional[Any]:
        if level_id is None:
            return None
        return self.cohorts.get((_to_int(year), str(level_id)))


def build_template() -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Template"
    ws.append(list(TEMPLATE_HEADERS))
    ws.append(list(TEMPLATE_SAMPLE_ROW))
    for column_cells in ws.columns:
        ws.column_dimensions[column_cells[0].column_letter].width = 12
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def validate_row(data: Row, line: int, refs: ReferenceMaps) -> List[RowError]:
    errors: List[RowError] = []
    for name in TEMPLATE_HEADERS:
        value = data.get(name)
        if value is None or value == "" or value == 0:
            errors.append(RowError(line, name, "Thiếu dữ liệu"))

    birth_year = data["birth_year"]
    if birth_year and not (BIRTH_YEAR_RANGE[0] <= birth_year <= BIRTH_YEAR_RANGE[1]):
        errors.append(RowError(line, "birth_year", "birth_year ngoài phạm vi 1980-2010"))
    if data["gender"] and data["gender"] not in GENDERS:
        errors.append(RowError(line, "gender", "Giới tính phải Nam/Nữ"))
    if data["group_number"] and data["group_number"] <= 0:
        errors.append(RowError(line, "group_number", "group_number phải > 0"))
    if data["batch_number"] and data["batch_number"] <= 0:
        errors.append(RowError(line, "batch_number", "batch_number phải > 0"))

    level_id = refs.level_id(data["level_name"])
    if data["level_name"] and level_id is None:
        errors.append(RowError(line, "level_name", "Level không tồn tại"))
    if data["level_name"] and data["year"] and refs.cohort_id(data["year"], level_id) is None:
        errors.append(RowError(line, "year", "Cohort không hợp lệ"))
    return errors


@dataclass
class StudentsService:
    store: OsceStoreProtocol

    def _reference_maps(self) -> ReferenceMaps:
        try:
            return ReferenceMaps(self.store.list_levels(), self.store.list_cohorts())
        except Dependency as exc:
            raise Dependency(f"Không lấy được Levels/Cohorts: {exc.message}") from exc

    def parse_upload(self, content: Optional[bytes], content_type: Optional[str]) -> ParseResult:
        if content is None:
            raise InvalidInput(MSG_FILE_REQUIRED)
        if len(content) > MAX_UPLOAD_BYTES:
            raise PayloadTooLarge(MSG_FILE_TOO_LARGE)
        if (content_type or "") not in ALLOWED_CONTENT_TYPES:
            raise UnsupportedMediaType(f"Sai định dạng: {content_type or ''}")

        try:
            workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
        except (BadZipFile, InvalidFileException, KeyError, OSError, ValueError) as exc:
            raise InvalidInput(f"Lỗi đọc Excel: {exc.__class__.__name__}") from exc
        if not workbook.worksheets:
            raise InvalidInput("Không tìm thấy sheet 1")

        refs = self._reference_maps()
        result = ParseResult()
        try:
            sheet = workbook.worksheets[0]
            for line, values in enumerate(sheet.iter_rows(min_row=2, values_only=True), start=2):
                if all(v is None or _cell_text(v) == "" for v in values):
                    continue
                cells = (list(values) + [None] * len(TEMPLATE_HEADERS))[: len(TEMPLATE_HEADERS)]
                data: Row = {name: _cell_text(value) for name, value in zip(TEMPLATE_HEADERS, cells)}
                for name in _NUMERIC_FIELDS:
                    data[name] = _to_int(data[name])
                result.errors.extend(validate_row(data, line, refs))
                result.rows.append({"line": line, **data})
        finally:
            workbook.close()
        logger.info("Roster parsed rows=%d errors=%d", len(result.rows), len(result.errors))
        return result

    def _normalize_for_commit(self, raw: Any, refs: ReferenceMaps) -> Tuple[Row, bool]:
        raw = raw if isinstance(raw, dict) else {}
        level_id = refs.level_id(raw.get("level_name"))
        row: Row = {
            "student_code": str(raw.get("student_code") or "").strip(),
            "last_name": str(raw.get("last_name") or "").strip(),
            "name": str(raw.get("name") or "").strip(),
            "birth_year": _to_int(raw.get("birth_year")),
            "gender": str(raw.get("gender") or "").strip(),
            "level_id": level_id,
            "cohort_id": refs.cohort_id(raw.get("year"), level_id),
            "group_number": _to_int(raw.get("group_number")),
            "batch_number": _to_int(raw.get("batch_number")),
        }
        complete = all(row[k] for k in row)
        return row, complete

    def commit(self, rows: Any) -> int:
        if not isinstance(rows, list) or not rows:
            raise InvalidInput(MSG_NO_ROWS)
        refs = self._reference_maps()
        normalized = [self._normalize_for_commit(r, refs) for r in rows]
        invalid = sum(1 for _, ok in normalized if not ok)
        if invalid:
            raise InvalidInput(
                f"Có {invalid} dòng thiếu/mapping sai (level/cohort). Vui lòng kiểm tra lại."
            )
        inserts = [row for row, _ in normalized]
        total = 0
        for start in range(0, len(inserts), COMMIT_CHUNK_SIZE):
            chunk = inserts[start: start + COMMIT_CHUNK_SIZE]
            try:
                self.store.upsert_students(chunk)
            except Dependency as exc:
                raise Dependency(
                    f"Lỗi upsert chunk {start // COMMIT_CHUNK_SIZE + 1}: {exc.message}"
                ) from exc
            total += len(chunk)
        logger.info("Roster committed count=%d", total)
        return total


__all__ = [
    "ALLOWED_CONTENT_TYPES",
    "COMMIT_CHUNK_SIZE",
    "MAX_UPLOAD_BYTES",
    "ParseResult",
    "ReferenceMaps",
    "RowError",
    "StudentsService",
    "TEMPLATE_FILENAME",
    "TEMPLATE_HEADERS",
    "XLSX_CONTENT_TYPE",
    "build_template",
    "validate_row",
]
