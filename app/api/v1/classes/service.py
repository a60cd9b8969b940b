"""Class operations: validation, class-code uniqueness, persistence, and derived views.

Every mutation runs the same steps and stops at the first failing one:
shape validation -> business rules -> class-code uniqueness -> persist.
"""

import io
import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from openpyxl import Workbook
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import BusinessRuleError, ConflictError, NotFoundError, ValidationError

from . import repository
from .schemas import ClassFilters, ClassNote, ClassNoteCreate, ClassRecord, ClassStatistics
from .validation import (
    OPERATION_CREATE,
    OPERATION_UPDATE,
    check_business_rules,
    validate_for_create,
    validate_for_update,
)

logger = logging.getLogger(__name__)

CLASS_CODE_SEQUENCE_MAX = 9999
SERVER_ASSIGNED_FIELDS = ("class_id", "created_at", "updated_at")


def _stamp_note_authors(
    notes: Tuple[ClassNote, ...],
    performed_by: Optional[str],
    stored: Tuple[ClassNote, ...] = (),
) -> Tuple[ClassNote, ...]:
    """Fill the author of incoming notes that have none. Notes already stored are left as they are."""
    if not performed_by:
        return notes
    return tuple(
        n if n.user or n in stored else n.model_copy(update={"user": performed_by}) for n in notes
    )


def _raise_for_business_rules(record: ClassRecord, operation: str) -> None:
    violations = check_business_rules(record, operation)
    if violations:
        logger.info("Class %s rejected by business rules: %s", operation, violations)
        raise BusinessRuleError(violations)


async def create_class(
    db: AsyncSession,
    data: Mapping[str, Any],
    performed_by: Optional[str] = None,
) -> ClassRecord:
    """Validate and insert a new class. Returns the stored record with id and timestamps."""
    # Identity and audit fields are assigned by storage, never taken from input
    record = ClassRecord.from_mapping({k: v for k, v in data.items() if k not in SERVER_ASSIGNED_FIELDS})

    errors = validate_for_create(record)
    if errors:
        logger.info("Class create rejected: %s", errors)
        raise ValidationError(errors)

    _raise_for_business_rules(record, OPERATION_CREATE)

    if await repository.class_code_exists(db, record.class_code):
        raise ConflictError()

    record = record.model_copy(
        update={"class_notes_data": _stamp_note_authors(record.class_notes_data, performed_by)}
    )
    created = await repository.create(db, record)
    logger.info(
        "Class %s created (id=%s) by %s", created.class_code, created.class_id, performed_by or "anonymous"
    )
    return created


async def update_class(
    db: AsyncSession,
    class_id: int,
    data: Mapping[str, Any],
    performed_by: Optional[str] = None,
) -> Optional[ClassRecord]:
    """Merge the supplied fields into the stored class. None when the class does not exist."""
    existing = await repository.find_by_id(db, class_id)
    if existing is None:
        return None

    data = {k: v for k, v in data.items() if k not in SERVER_ASSIGNED_FIELDS}
    patch = ClassRecord.from_mapping(data)
    errors = validate_for_update(patch)
    if errors:
        logger.info("Class %s update rejected: %s", class_id, errors)
        raise ValidationError(errors)

    changes = {name: getattr(patch, name) for name in ClassRecord.present_fields(data)}
    if "class_notes_data" in changes:
        changes["class_notes_data"] = _stamp_note_authors(
            changes["class_notes_data"], performed_by, stored=existing.class_notes_data
        )
    merged = existing.model_copy(update=changes)
    if not merged.class_code:
        raise ValidationError({"class_code": "Class code is required"})

    _raise_for_business_rules(merged, OPERATION_UPDATE)

    if merged.class_code != existing.class_code and await repository.class_code_exists(
        db, merged.class_code, exclude_id=class_id
    ):
        raise ConflictError()

    updated = await repository.update(db, merged)
    if updated is not None:
        logger.info(
            "Class %s updated (id=%s, fields=%s) by %s",
            updated.class_code,
            class_id,
            sorted(changes),
            performed_by or "anonymous",
        )
    return updated


async def delete_class(db: AsyncSession, class_id: int, performed_by: Optional[str] = None) -> bool:
    """Hard delete. False when the class does not exist."""
    existing = await repository.find_by_id(db, class_id)
    if existing is None:
        return False
    deleted = await repository.delete(db, class_id)
    if deleted:
        logger.info("Class %s deleted (id=%s) by %s", existing.class_code, class_id, performed_by or "anonymous")
    return deleted


async def add_class_note(
    db: AsyncSession,
    class_id: int,
    payload: ClassNoteCreate,
    performed_by: Optional[str] = None,
) -> ClassRecord:
    existing = await repository.find_by_id(db, class_id)
    if existing is None:
        raise NotFoundError()
    note = ClassNote(
        type=payload.type,
        note=payload.note,
        date=payload.date or date.today().isoformat(),
        user=performed_by,
    )
    updated = await repository.update(
        db, existing.model_copy(update={"class_notes_data": existing.class_notes_data + (note,)})
    )
    if updated is None:
        # Deleted between the read and the write
        raise NotFoundError()
    return updated


async def class_code_exists(db: AsyncSession, class_code: str, exclude_id: Optional[int] = None) -> bool:
    return await repository.class_code_exists(db, class_code, exclude_id)


async def get_class(db: AsyncSession, class_id: int) -> Optional[ClassRecord]:
    return await repository.find_by_id(db, class_id)


async def get_class_by_code(db: AsyncSession, class_code: str) -> Optional[ClassRecord]:
    return await repository.find_by_class_code(db, class_code)


def effective_page_size(page_size: Optional[int] = None) -> int:
    """Requested page size, defaulted to CLASS_PAGE_SIZE and capped at CLASS_PAGE_SIZE_MAX."""
    return min(max(page_size or settings.class_page_size, 1), settings.class_page_size_max)


async def list_classes(
    db: AsyncSession,
    filters: Optional[ClassFilters] = None,
    page: int = 1,
    page_size: Optional[int] = None,
) -> Tuple[List[ClassRecord], int]:
    """One page of classes plus the total matching count."""
    page = max(page, 1)
    page_size = effective_page_size(page_size)
    items = await repository.find_all(db, filters, limit=page_size, offset=(page - 1) * page_size)
    total = await repository.count(db, filters)
    return items, total


async def get_classes_by_agent(db: AsyncSession, agent_id: int) -> List[ClassRecord]:
    return await repository.find_by_agent_id(db, agent_id)


async def get_classes_by_supervisor(db: AsyncSession, supervisor_id: int) -> List[ClassRecord]:
    return await repository.find_by_supervisor_id(db, supervisor_id)


async def get_classes_by_client(db: AsyncSession, client_id: int) -> List[ClassRecord]:
    return await repository.find_by_client_id(db, client_id)


async def get_classes_by_learner(db: AsyncSession, learner_id: int) -> List[ClassRecord]:
    return await repository.find_by_learner_id(db, learner_id)


async def get_classes_by_date_range(db: AsyncSession, start_date: date, end_date: date) -> List[ClassRecord]:
    return await repository.find_by_date_range(db, start_date, end_date)


async def get_upcoming_classes(
    db: AsyncSession,
    days: Optional[int] = None,
    today: Optional[date] = None,
) -> List[ClassRecord]:
    """Classes starting between today and today + days (default UPCOMING_WINDOW_DAYS)."""
    today = today or date.today()
    window = settings.upcoming_window_days if days is None else days
    return await repository.find_by_date_range(db, today, today + timedelta(days=window))


async def get_dashboard_statistics(db: AsyncSession) -> ClassStatistics:
    return await repository.get_statistics(db)


async def generate_class_code(db: AsyncSession, client_id: int, class_type: str) -> str:
    """
    Next free code for a client and class type, e.g. employed + client 11 -> EMP-011-0001.

    Picks the smallest sequence not yet used under the prefix. All used codes are read
    in one query; the unique constraint still rejects a code taken concurrently.
    """
    prefix = f"{class_type.strip()[:3].upper()}-{client_id:03d}-"
    used = set(await repository.list_class_codes_with_prefix(db, prefix))
    for sequence in range(1, CLASS_CODE_SEQUENCE_MAX + 1):
        candidate = f"{prefix}{sequence:04d}"
        if candidate not in used:
            return candidate
    raise ConflictError(f"No free class code left for prefix {prefix}")


def calculate_end_date(start_date: Union[date, str], duration_days: int) -> str:
    """start + duration days, as YYYY-MM-DD. calculate_end_date("2025-02-01", 30) -> "2025-03-03"."""
    start = start_date if isinstance(start_date, date) else date.fromisoformat(start_date)
    return (start + timedelta(days=duration_days)).isoformat()


def _class_window(record: ClassRecord) -> Optional[Tuple[date, date]]:
    if record.original_start_date is None or not record.class_duration:
        return None
    start = record.original_start_date
    return start, start + timedelta(days=record.class_duration)


def get_class_progress(record: ClassRecord, today: Optional[date] = None) -> float:
    """Percent of the class elapsed: 0 before start, 100 from the end date on."""
    window = _class_window(record)
    if window is None:
        return 0.0
    start, end = window
    today = today or date.today()
    if today < start:
        return 0.0
    if today >= end:
        return 100.0
    return (today - start).days / (end - start).days * 100


def is_class_active(record: ClassRecord, today: Optional[date] = None) -> bool:
    """True while today is in [start, start + duration)."""
    window = _class_window(record)
    if window is None:
        return False
    start, end = window
    today = today or date.today()
    return start <= today < end


EXPORT_COLUMNS = (
    ("Class ID", "class_id"),
    ("Client ID", "client_id"),
    ("Site ID", "site_id"),
    ("Class Type", "class_type"),
    ("Class Subject", "class_subject"),
    ("Class Code", "class_code"),
    ("Duration (Days)", "class_duration"),
    ("Start Date", "original_start_date"),
    ("SETA Funded", "seta_funded"),
    ("SETA", "seta"),
    ("Exam Class", "exam_class"),
    ("Exam Type", "exam_type"),
    ("Class Agent", "class_agent"),
    ("Supervisor", "project_supervisor_id"),
    ("Delivery Date", "delivery_date"),
    ("Learner Count", "learner_ids"),
    ("Created At", "created_at"),
    ("Updated At", "updated_at"),
)


def _export_value(record: ClassRecord, attr: str) -> Any:
    value = getattr(record, attr)
    if attr in ("seta_funded", "exam_class"):
        return "Yes" if value else "No"
    if attr == "learner_ids":
        return len(value)
    if isinstance(value, date):
        # openpyxl cannot write tz-aware datetimes; export dates and timestamps as ISO text
        return value.isoformat()
    return value


async def export_classes(db: AsyncSession, filters: Optional[ClassFilters] = None) -> List[Dict[str, Any]]:
    """Flat rows with human-readable headers, newest first, at most EXPORT_LIMIT rows."""
    records = await repository.find_all(db, filters, limit=settings.export_limit, offset=0)
    return [{header: _export_value(r, attr) for header, attr in EXPORT_COLUMNS} for r in records]


def build_export_workbook(rows: List[Dict[str, Any]]) -> bytes:
    """Excel workbook of export rows (one sheet, header row first)."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Classes"
    headers = [header for header, _ in EXPORT_COLUMNS]
    ws.append(headers)
    for row in rows:
        ws.append([row.get(h) for h in headers])
    bio = io.BytesIO()
    wb.save(bio)
    return bio.getvalue()
