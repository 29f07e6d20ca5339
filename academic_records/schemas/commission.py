# academic_records/schemas/commission.py
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .common import NonBlankStr


class CommissionCreate(BaseModel):
    name: NonBlankStr
    description: str = ""
    is_active: bool = True


class CommissionUpdate(BaseModel):
    name: Optional[NonBlankStr] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None


class TutoringAssignmentCreate(BaseModel):
    teacher_id: int
    grade_level: NonBlankStr
    section: NonBlankStr


class CommissionRoster(BaseModel):
    """A commission with both rosters, derived from its membership rows"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str = ""
    is_active: bool = True
    teacher_ids: List[int] = Field(default_factory=list)
    student_ids: List[int] = Field(default_factory=list)
