from datetime import date

import pytest
from pydantic import ValidationError as PydanticValidationError

from app.api.v1.classes.schemas import ClassNote, ClassRecord, ScheduleData, StopRestartPeriod


def test_from_mapping_coerces_form_strings() -> None:
    record = ClassRecord.from_mapping(
        {
            "client_id": "11",
            "class_duration": "30",
            "original_start_date": "2025-02-01",
            "seta_funded": "yes",
            "exam_class": "0",
            "site_id": "11_1",
            "class_agent": 3.0,
        }
    )

    assert record.client_id == 11
    assert record.class_duration == 30
    assert record.original_start_date == date(2025, 2, 1)
    assert record.seta_funded is True
    assert record.exam_class is False
    assert record.site_id == "11_1"
    assert record.class_agent == 3
    assert record.malformed_fields == frozenset()


def test_unparseable_scalars_are_marked_malformed() -> None:
    record = ClassRecord.from_mapping(
        {"original_start_date": "01/02/2025", "client_id": "eleven", "seta_funded": "maybe"}
    )

    assert record.original_start_date is None
    assert record.client_id is None
    assert record.seta_funded is None
    assert record.malformed_fields == {"original_start_date", "client_id", "seta_funded"}


def test_blank_values_read_as_absent() -> None:
    record = ClassRecord.from_mapping({"class_code": "   ", "client_id": "", "delivery_date": ""})

    assert record.class_code is None
    assert record.client_id is None
    assert record.delivery_date is None
    assert record.malformed_fields == frozenset()


def test_id_lists_accept_json_text_and_drop_duplicates() -> None:
    record = ClassRecord.from_mapping({"learner_ids": "[3, 1, 3, \"2\"]", "backup_agent_ids": [7, 7]})

    assert record.learner_ids == (3, 1, 2)
    assert record.backup_agent_ids == (7,)


def test_malformed_sub_documents_become_empty() -> None:
    record = ClassRecord.from_mapping(
        {
            "learner_ids": "not json",
            "backup_agent_ids": '{"a": 1}',
            "schedule_data": "{broken",
            "stop_restart_dates": "42",
            "class_notes_data": '[{"note": ["not", "text"]}]',
        }
    )

    assert record.learner_ids == ()
    assert record.backup_agent_ids == ()
    assert record.schedule_data == ScheduleData()
    assert record.stop_restart_dates == ()
    assert record.class_notes_data == ()
    # Sub-documents never count as malformed input
    assert record.malformed_fields == frozenset()


def test_sub_documents_are_hydrated() -> None:
    record = ClassRecord.from_mapping(
        {
            "schedule_data": '{"days":["Monday","Friday"],"start_time":"09:00","end_time":"15:30"}',
            "stop_restart_dates": [{"stop_date": "2025-03-01", "restart_date": "2025-03-10"}],
            "class_notes_data": [{"type": "Venue Confirmed", "note": "Hall A", "date": "2025-02-01", "user": "7"}],
        }
    )

    assert record.schedule_data.days == ("Monday", "Friday")
    assert record.schedule_data.end_time == "15:30"
    assert record.stop_restart_dates == (StopRestartPeriod(stop_date="2025-03-01", restart_date="2025-03-10"),)
    assert record.class_notes_data[0] == ClassNote(type="Venue Confirmed", note="Hall A", date="2025-02-01", user="7")


def test_storage_row_round_trip(class_payload) -> None:
    record = ClassRecord.from_mapping(class_payload)
    row = record.to_storage_row()

    assert row["learner_ids"] == "[1,2,3]"
    assert row["backup_agent_ids"] == "[4,5]"
    assert ClassRecord.from_mapping(row) == record


def test_insert_and_update_rows_leave_out_server_fields(class_payload) -> None:
    record = ClassRecord.from_mapping(class_payload)

    assert "class_id" not in record.to_insert_row()
    assert "created_at" not in record.to_insert_row()
    assert "updated_at" not in record.to_insert_row()
    assert "class_id" not in record.to_update_row()
    assert "created_at" not in record.to_update_row()
    assert "updated_at" in record.to_update_row()


def test_records_are_immutable(class_payload) -> None:
    record = ClassRecord.from_mapping(class_payload)

    with pytest.raises(PydanticValidationError):
        record.class_code = "OTHER"

    changed = record.model_copy(update={"class_code": "OTHER"})
    assert changed.class_code == "OTHER"
    assert record.class_code == "EMP-011-0001"


def test_identity_and_value_equality(class_payload) -> None:
    first = ClassRecord.from_mapping({**class_payload, "class_id": 5})
    renamed = first.model_copy(update={"class_subject": "Customer Service"})

    assert first.is_same_entity(renamed)
    assert first != renamed
    assert not ClassRecord.from_mapping(class_payload).is_same_entity(ClassRecord.from_mapping(class_payload))


def test_present_fields_ignores_unknown_and_identity_keys() -> None:
    fields = ClassRecord.present_fields({"class_id": 1, "class_duration": 0, "colour": "red", "learner_ids": []})

    assert set(fields) == {"class_duration", "learner_ids"}


def test_malformed_fields_are_not_serialised() -> None:
    record = ClassRecord.from_mapping({"client_id": "x"})

    assert "malformed_fields" not in record.model_dump()


def test_schedule_keeps_weekday_windows_and_object_breaks() -> None:
    schedule = {
        "days": ["Monday", "Tuesday"],
        "start_time": "09:00",
        "end_time": "16:00",
        "break_times": [{"start": "12:00", "end": "13:00"}, "10:30-10:45"],
        "Monday": {"start_time": "08:00", "end_time": "12:00"},
    }
    record = ClassRecord.from_mapping({"schedule_data": schedule})

    assert record.schedule_data.days == ("Monday", "Tuesday")
    assert record.schedule_data.break_times == ({"start": "12:00", "end": "13:00"}, "10:30-10:45")

    reread = ClassRecord.from_mapping(record.to_storage_row())
    assert reread == record
    assert reread.schedule_data.model_dump(mode="json") == schedule


def test_notes_and_stop_periods_keep_extra_keys() -> None:
    record = ClassRecord.from_mapping(
        {
            "class_notes_data": [{"type": "Venue Confirmed", "note": "Hall A", "priority": "high"}],
            "stop_restart_dates": [{"stop_date": "2025-03-01", "restart_date": "2025-03-10", "reason": "Strike"}],
        }
    )

    row = ClassRecord.from_mapping(record.to_storage_row())
    assert row.class_notes_data[0].model_dump()["priority"] == "high"
    assert row.stop_restart_dates[0].model_dump()["reason"] == "Strike"
