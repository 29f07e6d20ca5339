# academic_records/schemas/registration.py
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Type, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from academic_records.core.enums import (
    AttendanceStatus,
    CommissionAttendanceStatus,
    ExamType,
    RecordKind,
)
from academic_records.core.exceptions import ValidationError
from academic_records.core.natural_keys import normalize_day
from .common import NonBlankStr


class RegistrationContext(BaseModel):
    """Fields shared by every item of one roster submission"""
    kind: ClassVar[RecordKind]
    value_field: ClassVar[str] = "status"
    status_enum: ClassVar[Optional[Type[Enum]]] = None

    teacher_id: int
    institution_id: int
    date: datetime

    @field_validator("date", mode="before")
    @classmethod
    def truncate_to_day(cls, v: Any) -> datetime:
        if v is None:
            raise ValueError("date is required")
        return normalize_day(v)


class AttendanceContext(RegistrationContext):
    kind: ClassVar[RecordKind] = RecordKind.ATTENDANCE
    status_enum: ClassVar[Optional[Type[Enum]]] = AttendanceStatus

    course: NonBlankStr
    grade_level: NonBlankStr
    section: NonBlankStr


class GradeContext(RegistrationContext):
    kind: ClassVar[RecordKind] = RecordKind.GRADE
    value_field: ClassVar[str] = "score"

    course: NonBlankStr
    grade_level: NonBlankStr
    section: NonBlankStr
    exam_type: ExamType


class CommissionAttendanceContext(RegistrationContext):
    kind: ClassVar[RecordKind] = RecordKind.COMMISSION_ATTENDANCE
    status_enum: ClassVar[Optional[Type[Enum]]] = CommissionAttendanceStatus

    commission_id: int


CONTEXT_TYPES: Dict[RecordKind, Type[RegistrationContext]] = {
    RecordKind.ATTENDANCE: AttendanceContext,
    RecordKind.GRADE: GradeContext,
    RecordKind.COMMISSION_ATTENDANCE: CommissionAttendanceContext,
}


def _first_error_field(exc: PydanticValidationError) -> Optional[str]:
    for error in exc.errors():
        if error.get("loc"):
            return str(error["loc"][0])
    return None


def parse_context(
    kind: RecordKind,
    data: Union[RegistrationContext, Mapping[str, Any], None]
) -> RegistrationContext:
    """Validate a submission context, naming the first offending field on failure"""
    try:
        context_type = CONTEXT_TYPES[RecordKind(kind)]
    except (KeyError, ValueError):
        raise ValidationError(f"Record kind '{kind}' does not accept roster submissions", field="kind") from None

    if data is None:
        raise ValidationError("Registration context is required", field="context")
    if isinstance(data, RegistrationContext):
        if not isinstance(data, context_type):
            raise ValidationError(
                f"Expected {context_type.__name__}, got {type(data).__name__}", field="kind"
            )
        return data

    try:
        return context_type.model_validate(dict(data))
    except PydanticValidationError as e:
        field = _first_error_field(e)
        raise ValidationError(
            f"Invalid registration context field '{field}'",
            field=field,
            details={"errors": e.errors(include_url=False, include_context=False)}
        ) from e


class RosterItem(BaseModel):
    """One student's value inside a submission; never rejects the batch on its own"""
    model_config = ConfigDict(extra="ignore")

    student_id: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("student_id", "studentId")
    )
    value: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("value", "status", "score")
    )
    comment: Optional[str] = None

    @field_validator("value", "comment", mode="before")
    @classmethod
    def stringify(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        if isinstance(v, Enum):
            v = v.value
        return str(v).strip()


class RegisteredItem(BaseModel):
    student_id: int
    record_id: int
    value: str
    key: Dict[str, Any]


class SkippedItem(BaseModel):
    index: int
    student_id: Optional[int] = None
    field: Optional[str] = None
    error: str
    reason: str
    key: Optional[Dict[str, Any]] = None


class RegistrationResult(BaseModel):
    kind: RecordKind
    created: List[RegisteredItem] = Field(default_factory=list)
    updated: List[RegisteredItem] = Field(default_factory=list)
    skipped: List[SkippedItem] = Field(default_factory=list)

    @property
    def conflicts(self) -> List[SkippedItem]:
        return [item for item in self.skipped if item.error == "REGISTRATION_CONFLICT"]

    @property
    def processed(self) -> int:
        return len(self.created) + len(self.updated)


class ExistingRosterEntry(BaseModel):
    student_id: int
    exists: bool
    record_id: Optional[int] = None
    value: Optional[str] = None
    comment: Optional[str] = None
    teacher_id: Optional[int] = None


class ExistingRosterFlags(BaseModel):
    kind: RecordKind
    context_key: Dict[str, Any]
    entries: List[ExistingRosterEntry] = Field(default_factory=list)

    def for_student(self, student_id: int) -> Optional[ExistingRosterEntry]:
        for entry in self.entries:
            if entry.student_id == student_id:
                return entry
        return None
