"""Pure checks over a ClassRecord. No I/O: uniqueness of the class code is checked by the service.

Two tiers:
- validate_for_create / validate_for_update: required fields and well-formed values,
  returned as {field: message}.
- check_business_rules: cross-field rules, returned as a list of messages. All rules
  are evaluated; violations are never short-circuited.
"""

import re
from datetime import date
from typing import Dict, List, Optional

from .schemas import ClassRecord

OPERATION_CREATE = "create"
OPERATION_UPDATE = "update"

MIN_DURATION_DAYS = 1
MAX_DURATION_DAYS = 365
MAX_LEARNERS = 30
MAX_BACKUP_AGENTS = 5

CLASS_CODE_RE = re.compile(r"[A-Z0-9\-_]+", re.IGNORECASE)

REQUIRED_ON_CREATE = {
    "client_id": "Client is required",
    "class_type": "Class type is required",
    "class_subject": "Class subject is required",
    "class_code": "Class code is required",
    "class_duration": "Class duration is required",
    "original_start_date": "Start date is required",
    "class_agent": "Class agent is required",
    "project_supervisor_id": "Project supervisor is required",
}

MALFORMED_MESSAGES = {
    "class_id": "Class id must be a number",
    "client_id": "Client must be a number",
    "class_duration": "Class duration must be a whole number of days",
    "class_agent": "Class agent must be a number",
    "initial_class_agent": "Initial class agent must be a number",
    "project_supervisor_id": "Project supervisor must be a number",
    "seta_funded": "SETA funded must be yes or no",
    "exam_class": "Exam class must be yes or no",
    "original_start_date": "Invalid start date format",
    "initial_agent_start_date": "Invalid initial agent start date format",
    "delivery_date": "Invalid delivery date format",
}


def _is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _malformed_errors(record: ClassRecord) -> Dict[str, str]:
    return {
        field: MALFORMED_MESSAGES.get(field, f"Invalid value for {field}")
        for field in sorted(record.malformed_fields)
    }


def validate_for_create(record: ClassRecord) -> Dict[str, str]:
    """Required fields plus malformed values. Empty dict means the record may proceed."""
    errors: Dict[str, str] = {}
    for field, message in REQUIRED_ON_CREATE.items():
        if _is_blank(getattr(record, field)):
            errors[field] = message
    # A supplied-but-unparseable value is reported as such rather than as missing
    errors.update(_malformed_errors(record))
    return errors


def validate_for_update(record: ClassRecord) -> Dict[str, str]:
    """All fields optional; only values that were supplied and could not be read are errors."""
    return _malformed_errors(record)


def check_business_rules(
    record: ClassRecord,
    operation: str,
    today: Optional[date] = None,
) -> List[str]:
    errors: List[str] = []
    today = today or date.today()

    if record.class_duration is not None and not (
        MIN_DURATION_DAYS <= record.class_duration <= MAX_DURATION_DAYS
    ):
        errors.append(f"Class duration must be between {MIN_DURATION_DAYS} and {MAX_DURATION_DAYS} days")

    if operation == OPERATION_CREATE and record.original_start_date is not None:
        if record.original_start_date < today:
            errors.append("Start date cannot be in the past")

    if record.seta_funded is True and _is_blank(record.seta):
        errors.append("SETA must be specified when class is SETA funded")

    if record.exam_class is True and _is_blank(record.exam_type):
        errors.append("Exam type must be specified when class is an exam class")

    if record.class_code and not CLASS_CODE_RE.fullmatch(record.class_code):
        errors.append("Class code must contain only letters, numbers, hyphens, and underscores")

    if record.original_start_date is not None and record.delivery_date is not None:
        if record.delivery_date <= record.original_start_date:
            errors.append("Delivery date must be after the start date")

    if len(record.learner_ids) > MAX_LEARNERS:
        errors.append(f"Maximum of {MAX_LEARNERS} learners allowed per class")

    if len(record.backup_agent_ids) > MAX_BACKUP_AGENTS:
        errors.append(f"Maximum of {MAX_BACKUP_AGENTS} backup agents allowed per class")

    return errors
