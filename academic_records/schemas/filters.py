# academic_records/schemas/filters.py
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from academic_records.core.enums import ExamType
from academic_records.core.natural_keys import end_of_day, normalize_day
from .common import blank_to_none


class RecordFilters(BaseModel):
    """
    Caller supplied narrowing filters. They are always conjoined with the
    visibility predicate, so they can only shrink the result set.
    """
    model_config = ConfigDict(extra="ignore")

    grade_level: Optional[str] = None
    section: Optional[str] = None
    course: Optional[str] = None
    teacher_id: Optional[int] = None
    student_id: Optional[int] = None
    sender_id: Optional[int] = None
    commission_id: Optional[int] = None
    institution_id: Optional[int] = None
    exam_type: Optional[ExamType] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @field_validator("*", mode="before")
    @classmethod
    def blank_is_unset(cls, v: Any) -> Any:
        return blank_to_none(v)

    @field_validator("start_date", mode="before")
    @classmethod
    def start_of_day(cls, v: Any) -> Optional[datetime]:
        v = blank_to_none(v)
        return None if v is None else normalize_day(v)

    @field_validator("end_date", mode="before")
    @classmethod
    def through_end_of_day(cls, v: Any) -> Optional[datetime]:
        v = blank_to_none(v)
        return None if v is None else end_of_day(v)

    def equality_filters(self) -> Dict[str, Any]:
        """Set filters that compare a single column for equality"""
        return {
            name: value
            for name, value in self.model_dump(exclude={"start_date", "end_date"}).items()
            if value is not None
        }
