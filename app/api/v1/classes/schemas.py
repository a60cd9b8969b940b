"""Class record value object, its sub-documents, and the API schemas built around it.

ClassRecord is immutable: change a record by building a new one with
`record.model_copy(update={...})`. Hydration from loose input goes through
`ClassRecord.from_mapping`, which coerces scalars and parses JSON-encoded
sub-documents. Malformed sub-documents become their empty form instead of
raising; malformed scalars are recorded in `malformed_fields` so the
validators can report them.
"""

import json
import logging
import re
from datetime import date, datetime
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Set, Tuple, Type, TypeVar, Union

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

logger = logging.getLogger(__name__)

TRUE_STRINGS = frozenset({"1", "true", "yes", "y", "on"})
FALSE_STRINGS = frozenset({"0", "false", "no", "n", "off"})
ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

INT_FIELDS = (
    "class_id",
    "client_id",
    "class_duration",
    "class_agent",
    "initial_class_agent",
    "project_supervisor_id",
)
TEXT_FIELDS = (
    "site_id",
    "class_address_line",
    "class_type",
    "class_subject",
    "class_code",
    "seta",
    "exam_type",
    "qa_visit_dates",
)
BOOL_FIELDS = ("seta_funded", "exam_class")
DATE_FIELDS = ("original_start_date", "initial_agent_start_date", "delivery_date")
ID_LIST_FIELDS = ("learner_ids", "backup_agent_ids")
TIMESTAMP_FIELDS = ("created_at", "updated_at")

# Fields a caller may change after creation
MUTABLE_FIELDS = (
    INT_FIELDS[1:]
    + TEXT_FIELDS
    + BOOL_FIELDS
    + DATE_FIELDS
    + ID_LIST_FIELDS
    + ("schedule_data", "stop_restart_dates", "class_notes_data")
)


class ScheduleData(BaseModel):
    """
    Weekly delivery pattern, e.g. days Mon-Fri 09:00-16:00.

    Break windows may be text ("12:00-13:00") or objects ({"start": "12:00", "end": "13:00"}).
    Other keys, such as per-weekday time windows ("Monday": {"start_time": ...}), are kept
    as given and written back unchanged.
    """

    days: Tuple[str, ...] = ()
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    break_times: Tuple[Union[str, Dict[str, Any]], ...] = ()

    class Config:
        frozen = True
        extra = "allow"


class ClassNote(BaseModel):
    type: Optional[str] = None
    note: Optional[str] = None
    date: Optional[str] = None
    user: Optional[str] = None

    class Config:
        frozen = True
        extra = "allow"


class StopRestartPeriod(BaseModel):
    """A pause in delivery: class stopped on stop_date, resumed on restart_date."""

    stop_date: Optional[str] = None
    restart_date: Optional[str] = None

    class Config:
        frozen = True
        extra = "allow"


SubDocument = TypeVar("SubDocument", bound=BaseModel)


def _coerce_int(value: Any) -> Optional[int]:
    """Blank -> None; "12", 12.0 -> 12. Raises ValueError for anything else."""
    if value is None:
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise ValueError(f"not an integer: {value!r}")
    text = str(value).strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        number = float(text)
        if number.is_integer():
            return int(number)
        raise


def _coerce_bool(value: Any) -> Optional[bool]:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    text = str(value).strip().lower()
    if not text:
        return None
    if text in TRUE_STRINGS:
        return True
    if text in FALSE_STRINGS:
        return False
    raise ValueError(f"not a boolean: {value!r}")


def _coerce_date(value: Any) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    if not ISO_DATE_RE.match(text):
        raise ValueError(f"not a YYYY-MM-DD date: {value!r}")
    return date.fromisoformat(text)


def _coerce_timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    return None


def _coerce_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = value if isinstance(value, str) else str(value)
    return text if text.strip() else None


def _parse_json(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8", errors="replace")
    if isinstance(value, str):
        if not value.strip():
            return None
        try:
            return json.loads(value)
        except ValueError:
            return None
    return value


def _coerce_id_list(field: str, value: Any) -> Tuple[int, ...]:
    parsed = _parse_json(value)
    if not isinstance(parsed, (list, tuple)):
        if parsed is not None:
            logger.debug("Ignoring malformed %s: %r", field, value)
        return ()
    ids: List[int] = []
    try:
        for item in parsed:
            item_id = _coerce_int(item)
            if item_id is not None and item_id not in ids:
                ids.append(item_id)
    except ValueError:
        logger.debug("Ignoring malformed %s: %r", field, value)
        return ()
    return tuple(ids)


def _coerce_schedule(value: Any) -> ScheduleData:
    parsed = _parse_json(value)
    if not isinstance(parsed, dict):
        if parsed not in (None, []):
            logger.debug("Ignoring malformed schedule_data: %r", value)
        return ScheduleData()
    try:
        return ScheduleData.model_validate(parsed)
    except PydanticValidationError:
        logger.debug("Ignoring malformed schedule_data: %r", value)
        return ScheduleData()


def _coerce_documents(field: str, value: Any, model: Type[SubDocument]) -> Tuple[SubDocument, ...]:
    parsed = _parse_json(value)
    if not isinstance(parsed, (list, tuple)):
        if parsed is not None:
            logger.debug("Ignoring malformed %s: %r", field, value)
        return ()
    try:
        return tuple(item if isinstance(item, model) else model.model_validate(item) for item in parsed)
    except PydanticValidationError:
        logger.debug("Ignoring malformed %s: %r", field, value)
        return ()


def _dump_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


class ClassRecord(BaseModel):
    """One training class as seen by the validators, the repository and the API."""

    class_id: Optional[int] = None
    client_id: Optional[int] = None
    site_id: Optional[str] = None
    class_address_line: Optional[str] = None
    class_type: Optional[str] = None
    class_subject: Optional[str] = None
    class_code: Optional[str] = None
    class_duration: Optional[int] = None
    original_start_date: Optional[date] = None
    seta_funded: Optional[bool] = None
    seta: Optional[str] = None
    exam_class: Optional[bool] = None
    exam_type: Optional[str] = None
    qa_visit_dates: Optional[str] = None
    class_agent: Optional[int] = None
    initial_class_agent: Optional[int] = None
    initial_agent_start_date: Optional[date] = None
    project_supervisor_id: Optional[int] = None
    delivery_date: Optional[date] = None
    learner_ids: Tuple[int, ...] = ()
    backup_agent_ids: Tuple[int, ...] = ()
    schedule_data: ScheduleData = Field(default_factory=ScheduleData)
    stop_restart_dates: Tuple[StopRestartPeriod, ...] = ()
    class_notes_data: Tuple[ClassNote, ...] = ()
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Input fields that were supplied but could not be coerced (e.g. start date "01/02/2025")
    malformed_fields: FrozenSet[str] = Field(default_factory=frozenset, exclude=True, repr=False)

    class Config:
        frozen = True

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ClassRecord":
        """Build a record from form data, a JSON body or a storage row. Unknown keys are ignored."""
        values: Dict[str, Any] = {}
        malformed: Set[str] = set()

        for name in INT_FIELDS:
            try:
                values[name] = _coerce_int(data.get(name))
            except (TypeError, ValueError):
                values[name] = None
                malformed.add(name)
        for name in BOOL_FIELDS:
            try:
                values[name] = _coerce_bool(data.get(name))
            except ValueError:
                values[name] = None
                malformed.add(name)
        for name in DATE_FIELDS:
            try:
                values[name] = _coerce_date(data.get(name))
            except ValueError:
                values[name] = None
                malformed.add(name)
        for name in TEXT_FIELDS:
            values[name] = _coerce_text(data.get(name))
        for name in TIMESTAMP_FIELDS:
            values[name] = _coerce_timestamp(data.get(name))
        for name in ID_LIST_FIELDS:
            values[name] = _coerce_id_list(name, data.get(name))

        values["schedule_data"] = _coerce_schedule(data.get("schedule_data"))
        values["stop_restart_dates"] = _coerce_documents(
            "stop_restart_dates", data.get("stop_restart_dates"), StopRestartPeriod
        )
        values["class_notes_data"] = _coerce_documents("class_notes_data", data.get("class_notes_data"), ClassNote)

        return cls(**values, malformed_fields=frozenset(malformed))

    @staticmethod
    def present_fields(data: Mapping[str, Any]) -> Tuple[str, ...]:
        """Mutable record fields the mapping actually supplies (used to merge partial updates)."""
        return tuple(name for name in MUTABLE_FIELDS if name in data)

    def is_same_entity(self, other: "ClassRecord") -> bool:
        return self.class_id is not None and self.class_id == other.class_id

    def to_storage_row(self) -> Dict[str, Any]:
        """Flat row keyed by column name; sub-documents are compact JSON text in their original order."""
        return {
            "class_id": self.class_id,
            "client_id": self.client_id,
            "site_id": self.site_id,
            "class_address_line": self.class_address_line,
            "class_type": self.class_type,
            "class_subject": self.class_subject,
            "class_code": self.class_code,
            "class_duration": self.class_duration,
            "original_start_date": self.original_start_date,
            "seta_funded": self.seta_funded,
            "seta": self.seta,
            "exam_class": self.exam_class,
            "exam_type": self.exam_type,
            "qa_visit_dates": self.qa_visit_dates,
            "class_agent": self.class_agent,
            "initial_class_agent": self.initial_class_agent,
            "initial_agent_start_date": self.initial_agent_start_date,
            "project_supervisor_id": self.project_supervisor_id,
            "delivery_date": self.delivery_date,
            "learner_ids": _dump_json(list(self.learner_ids)),
            "backup_agent_ids": _dump_json(list(self.backup_agent_ids)),
            "schedule_data": _dump_json(self.schedule_data.model_dump(mode="json")),
            "stop_restart_dates": _dump_json([p.model_dump(mode="json") for p in self.stop_restart_dates]),
            "class_notes_data": _dump_json([n.model_dump(mode="json") for n in self.class_notes_data]),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def to_insert_row(self) -> Dict[str, Any]:
        """Row for INSERT: no identity and no timestamps (the repository assigns them)."""
        row = self.to_storage_row()
        for key in ("class_id", "created_at", "updated_at"):
            row.pop(key)
        return row

    def to_update_row(self) -> Dict[str, Any]:
        """Row for UPDATE: identity and created_at are immutable."""
        row = self.to_storage_row()
        for key in ("class_id", "created_at"):
            row.pop(key)
        return row


# --- Queries ---


class ClassFilters(BaseModel):
    """Conjunctive list filters. Empty values are ignored."""

    client_id: Optional[int] = None
    class_type: Optional[str] = None
    class_agent: Optional[int] = None
    project_supervisor_id: Optional[int] = None
    search: Optional[str] = Field(None, description="Case-insensitive match on class code or subject")


# --- API payloads and responses ---


class ClassNoteCreate(BaseModel):
    type: str = Field(..., max_length=100, description="Note category, e.g. Venue Confirmed")
    note: str = Field(..., min_length=1)
    date: Optional[str] = Field(None, description="YYYY-MM-DD; defaults to today")


class ClassPaginatedResponse(BaseModel):
    """Paginated response for GET /api/v1/classes."""

    items: List[ClassRecord] = Field(..., description="Classes on this page, newest first")
    total: int = Field(..., ge=0, description="Total count matching the filters")
    page: int = Field(..., ge=1, description="Current page")
    page_size: int = Field(..., ge=1, description="Page size")
    total_pages: int = Field(..., ge=0, description="Total pages")
    has_next: bool
    has_prev: bool


class ClassProgressResponse(BaseModel):
    class_id: int
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    progress: float = Field(..., ge=0, le=100, description="Percent of the class duration elapsed")
    is_active: bool


class MonthlyClassCount(BaseModel):
    month: str = Field(..., description="YYYY-MM of creation")
    count: int


class ClassStatistics(BaseModel):
    total_classes: int
    by_type: Dict[str, int]
    by_month: List[MonthlyClassCount]
    seta_funded: Dict[str, int] = Field(..., description="Counts keyed by 'funded' / 'not_funded'")


class GeneratedClassCode(BaseModel):
    class_code: str
