"""Persistence for class records. The only module that reads or writes the classes table.

Rows go in via ClassRecord.to_insert_row / to_update_row and come back out through
ClassRecord.from_mapping, so the JSON text columns are always written and read the
same way. Lookups return None (or an empty list) when nothing matches; storage
failures are raised as StorageError, class-code collisions as ConflictError.
"""

import logging
from collections import Counter
from datetime import date, datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import delete as sa_delete
from sqlalchemy import func, or_, select
from sqlalchemy import update as sa_update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import ConflictError, StorageError
from app.core.models import TrainingClass

from .schemas import ClassFilters, ClassRecord, ClassStatistics, MonthlyClassCount

logger = logging.getLogger(__name__)

CLASS_CODE_COLUMN = "class_code"
STATISTICS_MONTHS = 12


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _row_to_record(row: TrainingClass) -> ClassRecord:
    return ClassRecord.from_mapping({col.key: getattr(row, col.key) for col in TrainingClass.__table__.columns})


def _select_classes():
    # populate_existing: rows changed by UPDATE statements must not be served stale from the identity map
    return select(TrainingClass).execution_options(populate_existing=True)


def _storage_error(action: str, exc: SQLAlchemyError) -> StorageError:
    """Log the failure with its traceback; the returned error only carries detail in debug mode."""
    logger.exception("Storage failure while trying to %s", action)
    if settings.debug:
        return StorageError(f"Failed to {action}: {exc}")
    return StorageError(f"Failed to {action}")


def _filter_conditions(filters: Optional[ClassFilters]) -> list:
    if filters is None:
        return []
    conditions = []
    if filters.client_id is not None:
        conditions.append(TrainingClass.client_id == filters.client_id)
    if filters.class_type:
        conditions.append(TrainingClass.class_type == filters.class_type)
    if filters.class_agent is not None:
        conditions.append(TrainingClass.class_agent == filters.class_agent)
    if filters.project_supervisor_id is not None:
        conditions.append(TrainingClass.project_supervisor_id == filters.project_supervisor_id)
    search = (filters.search or "").strip()
    if search:
        pattern = f"%{_escape_like(search)}%"
        conditions.append(
            or_(
                TrainingClass.class_code.ilike(pattern, escape="\\"),
                TrainingClass.class_subject.ilike(pattern, escape="\\"),
            )
        )
    return conditions


async def _fetch_records(db: AsyncSession, stmt, action: str) -> List[ClassRecord]:
    try:
        result = await db.execute(stmt)
    except SQLAlchemyError as exc:
        raise _storage_error(action, exc) from exc
    return [_row_to_record(row) for row in result.scalars().all()]


async def _fetch_record(db: AsyncSession, stmt, action: str) -> Optional[ClassRecord]:
    try:
        result = await db.execute(stmt)
    except SQLAlchemyError as exc:
        raise _storage_error(action, exc) from exc
    row = result.scalar_one_or_none()
    return _row_to_record(row) if row else None


async def _scalar(db: AsyncSession, stmt, action: str):
    try:
        result = await db.execute(stmt)
    except SQLAlchemyError as exc:
        raise _storage_error(action, exc) from exc
    return result.scalar_one()


async def find_all(
    db: AsyncSession,
    filters: Optional[ClassFilters] = None,
    limit: int = 50,
    offset: int = 0,
) -> List[ClassRecord]:
    """One page of classes matching all filters, newest first."""
    stmt = _select_classes()
    for condition in _filter_conditions(filters):
        stmt = stmt.where(condition)
    stmt = (
        stmt.order_by(TrainingClass.created_at.desc(), TrainingClass.class_id.desc())
        .limit(max(limit, 0))
        .offset(max(offset, 0))
    )
    return await _fetch_records(db, stmt, "list classes")


async def count(db: AsyncSession, filters: Optional[ClassFilters] = None) -> int:
    stmt = select(func.count()).select_from(TrainingClass)
    for condition in _filter_conditions(filters):
        stmt = stmt.where(condition)
    return int(await _scalar(db, stmt, "count classes"))


async def find_by_id(db: AsyncSession, class_id: int) -> Optional[ClassRecord]:
    stmt = _select_classes().where(TrainingClass.class_id == class_id)
    return await _fetch_record(db, stmt, "load class")


async def find_by_class_code(db: AsyncSession, class_code: str) -> Optional[ClassRecord]:
    stmt = _select_classes().where(TrainingClass.class_code == class_code)
    return await _fetch_record(db, stmt, "load class by code")


async def create(db: AsyncSession, record: ClassRecord) -> ClassRecord:
    """Insert and return the record with class_id and both timestamps assigned."""
    now = _utcnow()
    row = TrainingClass(**record.to_insert_row(), created_at=now, updated_at=now)
    db.add(row)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        if CLASS_CODE_COLUMN in str(exc.orig):
            raise ConflictError() from exc
        raise _storage_error("create class", exc) from exc
    except SQLAlchemyError as exc:
        await db.rollback()
        raise _storage_error("create class", exc) from exc
    return record.model_copy(update={"class_id": row.class_id, "created_at": now, "updated_at": now})


async def update(db: AsyncSession, record: ClassRecord) -> Optional[ClassRecord]:
    """Overwrite the row for record.class_id. None when no such row exists."""
    if record.class_id is None:
        raise ValueError("update requires a record with class_id set")
    values = record.to_update_row()
    values["updated_at"] = _utcnow()
    stmt = sa_update(TrainingClass).where(TrainingClass.class_id == record.class_id).values(**values)
    try:
        result = await db.execute(stmt)
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        if CLASS_CODE_COLUMN in str(exc.orig):
            raise ConflictError() from exc
        raise _storage_error("update class", exc) from exc
    except SQLAlchemyError as exc:
        await db.rollback()
        raise _storage_error("update class", exc) from exc
    if result.rowcount == 0:
        return None
    return await find_by_id(db, record.class_id)


async def delete(db: AsyncSession, class_id: int) -> bool:
    """Hard delete. True if a row was removed."""
    stmt = sa_delete(TrainingClass).where(TrainingClass.class_id == class_id)
    try:
        result = await db.execute(stmt)
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise _storage_error("delete class", exc) from exc
    return result.rowcount > 0


async def class_code_exists(db: AsyncSession, class_code: str, exclude_id: Optional[int] = None) -> bool:
    stmt = select(func.count()).select_from(TrainingClass).where(TrainingClass.class_code == class_code)
    if exclude_id is not None:
        stmt = stmt.where(TrainingClass.class_id != exclude_id)
    return int(await _scalar(db, stmt, "check class code")) > 0


async def list_class_codes_with_prefix(db: AsyncSession, prefix: str) -> List[str]:
    stmt = select(TrainingClass.class_code).where(
        TrainingClass.class_code.like(f"{_escape_like(prefix)}%", escape="\\")
    )
    try:
        result = await db.execute(stmt)
    except SQLAlchemyError as exc:
        raise _storage_error("list class codes", exc) from exc
    return list(result.scalars().all())


async def find_by_agent_id(db: AsyncSession, agent_id: int) -> List[ClassRecord]:
    """Classes where the agent is the class agent, the initial agent, or one of the backup agents."""
    # LIKE only narrows the candidates; membership is decided on the parsed list
    stmt = (
        _select_classes()
        .where(
            or_(
                TrainingClass.class_agent == agent_id,
                TrainingClass.initial_class_agent == agent_id,
                TrainingClass.backup_agent_ids.like(f"%{agent_id}%"),
            )
        )
        .order_by(TrainingClass.created_at.desc(), TrainingClass.class_id.desc())
    )
    records = await _fetch_records(db, stmt, "list classes by agent")
    return [
        r
        for r in records
        if r.class_agent == agent_id or r.initial_class_agent == agent_id or agent_id in r.backup_agent_ids
    ]


async def find_by_supervisor_id(db: AsyncSession, supervisor_id: int) -> List[ClassRecord]:
    stmt = (
        _select_classes()
        .where(TrainingClass.project_supervisor_id == supervisor_id)
        .order_by(TrainingClass.created_at.desc(), TrainingClass.class_id.desc())
    )
    return await _fetch_records(db, stmt, "list classes by supervisor")


async def find_by_client_id(db: AsyncSession, client_id: int) -> List[ClassRecord]:
    stmt = (
        _select_classes()
        .where(TrainingClass.client_id == client_id)
        .order_by(TrainingClass.created_at.desc(), TrainingClass.class_id.desc())
    )
    return await _fetch_records(db, stmt, "list classes by client")


async def find_by_learner_id(db: AsyncSession, learner_id: int) -> List[ClassRecord]:
    stmt = (
        _select_classes()
        .where(TrainingClass.learner_ids.like(f"%{learner_id}%"))
        .order_by(TrainingClass.created_at.desc(), TrainingClass.class_id.desc())
    )
    records = await _fetch_records(db, stmt, "list classes by learner")
    return [r for r in records if learner_id in r.learner_ids]


async def find_by_date_range(db: AsyncSession, start_date: date, end_date: date) -> List[ClassRecord]:
    """Classes whose original start date falls in [start_date, end_date], earliest first."""
    stmt = (
        _select_classes()
        .where(TrainingClass.original_start_date.between(start_date, end_date))
        .order_by(TrainingClass.original_start_date.asc(), TrainingClass.class_id.asc())
    )
    return await _fetch_records(db, stmt, "list classes by date range")


def _first_of_month_back(now: datetime, months: int) -> datetime:
    year, month = now.year, now.month - months
    while month <= 0:
        month += 12
        year -= 1
    return datetime(year, month, 1, tzinfo=now.tzinfo)


async def get_statistics(db: AsyncSession, now: Optional[datetime] = None) -> ClassStatistics:
    """Dashboard counts: total, per class type, per creation month (last 12 months), SETA funded or not."""
    now = now or _utcnow()
    try:
        total = (await db.execute(select(func.count()).select_from(TrainingClass))).scalar_one()
        by_type_rows = (
            await db.execute(
                select(TrainingClass.class_type, func.count()).group_by(TrainingClass.class_type)
            )
        ).all()
        since = _first_of_month_back(now, STATISTICS_MONTHS - 1)
        created = (
            await db.execute(select(TrainingClass.created_at).where(TrainingClass.created_at >= since))
        ).scalars().all()
        seta_rows = (
            await db.execute(
                select(TrainingClass.seta_funded, func.count()).group_by(TrainingClass.seta_funded)
            )
        ).all()
    except SQLAlchemyError as exc:
        raise _storage_error("compute class statistics", exc) from exc

    by_type: Dict[str, int] = {}
    for class_type, n in by_type_rows:
        key = class_type or "unspecified"
        by_type[key] = by_type.get(key, 0) + int(n)

    months = Counter(ts.strftime("%Y-%m") for ts in created if ts is not None)

    seta_funded = {"funded": 0, "not_funded": 0}
    for funded, n in seta_rows:
        seta_funded["funded" if funded else "not_funded"] += int(n)

    return ClassStatistics(
        total_classes=int(total),
        by_type=by_type,
        by_month=[MonthlyClassCount(month=m, count=c) for m, c in sorted(months.items())],
        seta_funded=seta_funded,
    )
