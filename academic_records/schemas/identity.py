# academic_records/schemas/identity.py
from typing import Annotated, List, Literal, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field


class HomeroomGroup(BaseModel):
    model_config = ConfigDict(frozen=True)

    grade_level: str
    section: str


class HomeroomTutor(BaseModel):
    model_config = ConfigDict(frozen=True)

    grade_level: str
    section: str
    teacher_id: int


class IdentityBase(BaseModel):
    """Read-only snapshot of who is asking, resolved once per request"""
    model_config = ConfigDict(frozen=True)

    user_id: int
    institution_id: int


class TeacherIdentity(IdentityBase):
    role: Literal["teacher"] = "teacher"
    courses: Tuple[str, ...] = ()
    commission_ids: Tuple[int, ...] = ()
    tutoring: Tuple[HomeroomGroup, ...] = ()

    def tutors(self, grade_level: str, section: str) -> bool:
        return any(g.grade_level == grade_level and g.section == section for g in self.tutoring)


class StudentIdentity(IdentityBase):
    role: Literal["student"] = "student"
    grades: Tuple[str, ...] = ()
    sections: Tuple[str, ...] = ()
    courses: Tuple[str, ...] = ()
    commission_ids: Tuple[int, ...] = ()
    homeroom_tutors: Tuple[HomeroomTutor, ...] = ()

    @property
    def groups(self) -> List[HomeroomGroup]:
        return [
            HomeroomGroup(grade_level=grade, section=section)
            for grade in self.grades
            for section in self.sections
        ]


class AdministratorIdentity(IdentityBase):
    role: Literal["administrator"] = "administrator"


Identity = Annotated[
    Union[TeacherIdentity, StudentIdentity, AdministratorIdentity],
    Field(discriminator="role"),
]
