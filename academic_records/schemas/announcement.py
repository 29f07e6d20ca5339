# academic_records/schemas/announcement.py
from typing import Any, Optional

from pydantic import BaseModel, field_validator

from .common import NonBlankStr, blank_to_none


class AnnouncementCreate(BaseModel):
    """Every scoping field left empty widens the audience; all empty is institution-wide"""
    subject: NonBlankStr
    message: NonBlankStr
    grade_level: Optional[str] = None
    section: Optional[str] = None
    course: Optional[str] = None
    student_id: Optional[int] = None
    commission_id: Optional[int] = None

    @field_validator("grade_level", "section", "course", "student_id", "commission_id", mode="before")
    @classmethod
    def blank_is_unset(cls, v: Any) -> Any:
        return blank_to_none(v)

    @property
    def is_institution_wide(self) -> bool:
        return all(
            getattr(self, name) is None
            for name in ("grade_level", "section", "course", "student_id", "commission_id")
        )


class TutoringAnnouncementCreate(BaseModel):
    subject: NonBlankStr
    message: NonBlankStr
    grade_level: NonBlankStr
    section: NonBlankStr
