# academic_records/schemas/user.py
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator

from .common import NonBlankStr


def _clean_list(values: List[str]) -> List[str]:
    cleaned = []
    for value in values:
        value = str(value).strip()
        if value and value not in cleaned:
            cleaned.append(value)
    return cleaned


class UserCreateBase(BaseModel):
    code: NonBlankStr
    name: NonBlankStr
    last_name: NonBlankStr
    phone: str = ""
    email: Optional[str] = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip().lower()
        return v or None


class StudentCreate(UserCreateBase):
    role: Literal["student"]
    grades: List[str] = Field(..., min_length=1)
    sections: List[str] = Field(..., min_length=1)
    courses: List[str] = Field(default_factory=list)

    @field_validator("grades", "sections", "courses")
    @classmethod
    def clean_memberships(cls, v: List[str], info) -> List[str]:
        cleaned = _clean_list(v)
        if info.field_name != "courses" and not cleaned:
            raise ValueError(f"{info.field_name} must contain at least one value")
        return cleaned


class TeacherCreate(UserCreateBase):
    role: Literal["teacher"]
    courses: List[str] = Field(default_factory=list)

    @field_validator("courses")
    @classmethod
    def clean_courses(cls, v: List[str]) -> List[str]:
        return _clean_list(v)


class AdministratorCreate(UserCreateBase):
    role: Literal["administrator"]


UserCreate = Annotated[
    Union[StudentCreate, TeacherCreate, AdministratorCreate],
    Field(discriminator="role"),
]


user_create_adapter = TypeAdapter(UserCreate)
