from datetime import date, timedelta

from app.api.v1.classes.schemas import ClassRecord
from app.api.v1.classes.validation import (
    OPERATION_CREATE,
    OPERATION_UPDATE,
    check_business_rules,
    validate_for_create,
    validate_for_update,
)

TODAY = date(2025, 1, 15)


def _record(**overrides) -> ClassRecord:
    data = {
        "client_id": 11,
        "class_type": "employed",
        "class_subject": "Basic Computer Skills",
        "class_code": "EMP-011-0001",
        "class_duration": 30,
        "original_start_date": "2025-02-01",
        "class_agent": 1,
        "project_supervisor_id": 2,
    }
    data.update(overrides)
    return ClassRecord.from_mapping(data)


def test_complete_record_passes_create_checks() -> None:
    record = _record()

    assert validate_for_create(record) == {}
    assert check_business_rules(record, OPERATION_CREATE, today=TODAY) == []


def test_missing_required_fields_are_reported_per_field() -> None:
    errors = validate_for_create(ClassRecord.from_mapping({"class_type": "employed"}))

    assert errors["client_id"] == "Client is required"
    assert errors["original_start_date"] == "Start date is required"
    assert errors["class_code"] == "Class code is required"
    assert "class_type" not in errors


def test_unparseable_date_is_reported_as_invalid_not_missing() -> None:
    errors = validate_for_create(_record(original_start_date="01/02/2025"))

    assert errors == {"original_start_date": "Invalid start date format"}


def test_update_only_reports_malformed_values() -> None:
    assert validate_for_update(ClassRecord.from_mapping({"class_duration": 0})) == {}
    assert validate_for_update(ClassRecord.from_mapping({"delivery_date": "tomorrow"})) == {
        "delivery_date": "Invalid delivery date format"
    }


def test_seta_funded_requires_seta() -> None:
    assert check_business_rules(_record(seta_funded=True), OPERATION_CREATE, today=TODAY) == [
        "SETA must be specified when class is SETA funded"
    ]
    assert check_business_rules(_record(seta_funded=True, seta="HWSETA"), OPERATION_CREATE, today=TODAY) == []


def test_exam_class_requires_exam_type() -> None:
    assert check_business_rules(_record(exam_class="yes"), OPERATION_CREATE, today=TODAY) == [
        "Exam type must be specified when class is an exam class"
    ]
    assert check_business_rules(_record(exam_class="yes", exam_type="Written"), OPERATION_CREATE, today=TODAY) == []


def test_learner_limit_is_thirty() -> None:
    assert check_business_rules(_record(learner_ids=list(range(1, 31))), OPERATION_CREATE, today=TODAY) == []
    assert check_business_rules(_record(learner_ids=list(range(1, 32))), OPERATION_CREATE, today=TODAY) == [
        "Maximum of 30 learners allowed per class"
    ]


def test_backup_agent_limit_is_five() -> None:
    assert check_business_rules(_record(backup_agent_ids=[1, 2, 3, 4, 5, 6]), OPERATION_UPDATE, today=TODAY) == [
        "Maximum of 5 backup agents allowed per class"
    ]


def test_duration_must_be_between_one_and_a_year() -> None:
    message = "Class duration must be between 1 and 365 days"

    assert check_business_rules(_record(class_duration=0), OPERATION_UPDATE, today=TODAY) == [message]
    assert check_business_rules(_record(class_duration=366), OPERATION_UPDATE, today=TODAY) == [message]
    assert check_business_rules(_record(class_duration=1), OPERATION_UPDATE, today=TODAY) == []
    assert check_business_rules(_record(class_duration=365), OPERATION_UPDATE, today=TODAY) == []


def test_past_start_date_only_rejected_on_create() -> None:
    record = _record(original_start_date=(TODAY - timedelta(days=1)).isoformat())

    assert check_business_rules(record, OPERATION_CREATE, today=TODAY) == ["Start date cannot be in the past"]
    assert check_business_rules(record, OPERATION_UPDATE, today=TODAY) == []


def test_delivery_date_must_follow_start_date() -> None:
    same_day = _record(delivery_date="2025-02-01")
    later = _record(delivery_date="2025-03-15")

    assert check_business_rules(same_day, OPERATION_CREATE, today=TODAY) == [
        "Delivery date must be after the start date"
    ]
    assert check_business_rules(later, OPERATION_CREATE, today=TODAY) == []


def test_class_code_charset() -> None:
    assert check_business_rules(_record(class_code="emp_011-0001"), OPERATION_CREATE, today=TODAY) == []
    assert check_business_rules(_record(class_code="EMP 011/0001"), OPERATION_CREATE, today=TODAY) == [
        "Class code must contain only letters, numbers, hyphens, and underscores"
    ]
    assert check_business_rules(_record(class_code="EMP-011\n"), OPERATION_CREATE, today=TODAY) != []


def test_all_violations_are_reported_together() -> None:
    record = _record(
        class_duration=400,
        seta_funded=True,
        exam_class=True,
        class_code="BAD CODE",
        learner_ids=list(range(40)),
    )

    assert len(check_business_rules(record, OPERATION_CREATE, today=TODAY)) == 5


def test_start_date_of_today_is_allowed_on_create() -> None:
    record = _record(original_start_date=TODAY.isoformat())

    assert check_business_rules(record, OPERATION_CREATE, today=TODAY) == []
