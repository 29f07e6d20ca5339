from datetime import date, datetime, timezone
from types import SimpleNamespace

import pytest
from sqlalchemy import UniqueConstraint

from academic_records.core.enums import ExamType, RecordKind
from academic_records.core.exceptions import ValidationError
from academic_records.core.natural_keys import (
    ATTENDANCE_KEY,
    COMMISSION_ATTENDANCE_KEY,
    GRADE_KEY,
    end_of_day,
    natural_key_for,
    normalize_day,
)
from academic_records.models import Attendance, CommissionAttendance, Grade


@pytest.mark.parametrize("value", [
    date(2024, 3, 4),
    datetime(2024, 3, 4, 15, 30),
    "2024-03-04",
    "2024-03-04T10:15:00Z",
    datetime(2024, 3, 4, 8, 0, tzinfo=timezone.utc),
])
def test_normalize_day_truncates_to_naive_midnight(value):
    assert normalize_day(value) == datetime(2024, 3, 4)


def test_normalize_day_rejects_garbage():
    with pytest.raises(ValueError):
        normalize_day("")
    with pytest.raises(ValueError):
        normalize_day(42)


def test_end_of_day_is_last_microsecond():
    assert end_of_day("2024-03-04") == datetime(2024, 3, 4, 23, 59, 59, 999999)


def test_key_for_puts_student_first_and_normalizes_values():
    context = SimpleNamespace(
        course="Math", date="2024-03-04T09:00:00", institution_id=1,
        grade_level="5", section="A", exam_type=ExamType.FINAL,
    )
    key = GRADE_KEY.key_for(context, 42)

    assert key == {
        "student_id": 42,
        "course": "Math",
        "date": datetime(2024, 3, 4),
        "institution_id": 1,
        "grade_level": "5",
        "section": "A",
        "exam_type": "Examen Final",
    }


def test_context_key_names_missing_field():
    context = SimpleNamespace(course="Math", date=date(2024, 3, 4), institution_id=1, grade_level="5", section=" ")
    with pytest.raises(ValidationError) as exc:
        ATTENDANCE_KEY.context_key(context)
    assert exc.value.field == "section"


def test_as_predicate_requires_complete_key():
    with pytest.raises(ValidationError) as exc:
        COMMISSION_ATTENDANCE_KEY.as_predicate({"student_id": 1, "commission_id": 2, "date": datetime(2024, 3, 4)})
    assert exc.value.field == "institution_id"


def test_context_predicate_matches_same_day_records_only():
    context = SimpleNamespace(commission_id=2, date=date(2024, 3, 4), institution_id=1)
    predicate = COMMISSION_ATTENDANCE_KEY.context_predicate(context)

    assert predicate.matches(SimpleNamespace(commission_id=2, date=datetime(2024, 3, 4), institution_id=1))
    assert not predicate.matches(SimpleNamespace(commission_id=2, date=datetime(2024, 3, 5), institution_id=1))


@pytest.mark.parametrize("model,key", [
    (Attendance, ATTENDANCE_KEY),
    (Grade, GRADE_KEY),
    (CommissionAttendance, COMMISSION_ATTENDANCE_KEY),
])
def test_models_enforce_the_declared_key(model, key):
    constraints = {
        c.name: tuple(col.name for col in c.columns)
        for c in model.__table__.constraints
        if isinstance(c, UniqueConstraint)
    }
    assert constraints[key.constraint_name] == key.fields


def test_natural_key_lookup():
    assert natural_key_for("grade") is GRADE_KEY
    with pytest.raises(ValidationError) as exc:
        natural_key_for(RecordKind.ANNOUNCEMENT)
    assert exc.value.field == "kind"
