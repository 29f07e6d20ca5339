"""Natural keys of the fact records.

Each fact kind is identified by the tuple of fields that must be unique
across its collection. The same declaration feeds the ORM unique
constraints, the registration engine's lookups and the check-existing read
path, so the three can never drift apart.
"""
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any, Dict, Mapping, Tuple, Union

from academic_records.core.enums import RecordKind
from academic_records.core.exceptions import ValidationError
from academic_records.core.predicates import Eq, Predicate, all_of

DayLike = Union[date, datetime, str]

STUDENT_FIELD = "student_id"


def normalize_day(value: DayLike) -> datetime:
    """Truncate to the start of the calendar day, dropping any timezone"""
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("empty date")
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        value = datetime.fromisoformat(text)
    if isinstance(value, datetime):
        return datetime.combine(value.date(), time.min)
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    raise ValueError(f"unsupported date value: {value!r}")


def end_of_day(value: DayLike) -> datetime:
    return normalize_day(value) + timedelta(days=1) - timedelta(microseconds=1)


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


@dataclass(frozen=True)
class NaturalKey:
    kind: RecordKind
    fields: Tuple[str, ...]

    @property
    def context_fields(self) -> Tuple[str, ...]:
        return tuple(f for f in self.fields if f != STUDENT_FIELD)

    @property
    def constraint_name(self) -> str:
        return f"uq_{self.kind.value}_natural_key"

    def context_key(self, context: Any) -> Dict[str, Any]:
        """Key fields shared by every item of a roster submission"""
        key = {}
        for field in self.context_fields:
            value = getattr(context, field, None)
            if value is None or (isinstance(value, str) and not value.strip()):
                raise ValidationError(f"Missing required context field '{field}'", field=field)
            if field == "date":
                value = normalize_day(value)
            key[field] = _plain(value)
        return key

    def key_for(self, context: Any, student_id: int) -> Dict[str, Any]:
        return {STUDENT_FIELD: student_id, **self.context_key(context)}

    def as_predicate(self, key: Mapping[str, Any]) -> Predicate:
        missing = [f for f in self.fields if f not in key]
        if missing:
            raise ValidationError(f"Incomplete natural key, missing {missing}", field=missing[0])
        return all_of(*(Eq(field, key[field]) for field in self.fields))

    def context_predicate(self, context: Any) -> Predicate:
        return all_of(*(Eq(field, value) for field, value in self.context_key(context).items()))


ATTENDANCE_KEY = NaturalKey(
    RecordKind.ATTENDANCE,
    ("student_id", "course", "date", "institution_id", "grade_level", "section"),
)

GRADE_KEY = NaturalKey(
    RecordKind.GRADE,
    ("student_id", "course", "date", "institution_id", "grade_level", "section", "exam_type"),
)

COMMISSION_ATTENDANCE_KEY = NaturalKey(
    RecordKind.COMMISSION_ATTENDANCE,
    ("student_id", "commission_id", "date", "institution_id"),
)

NATURAL_KEYS: Dict[RecordKind, NaturalKey] = {
    key.kind: key for key in (ATTENDANCE_KEY, GRADE_KEY, COMMISSION_ATTENDANCE_KEY)
}


def natural_key_for(kind: RecordKind) -> NaturalKey:
    try:
        return NATURAL_KEYS[RecordKind(kind)]
    except (KeyError, ValueError):
        raise ValidationError(f"Record kind '{kind}' has no natural key", field="kind") from None
