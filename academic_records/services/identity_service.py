# academic_records/services/identity_service.py
from typing import List, Optional, Sequence

from sqlalchemy import cast, func, select
from sqlalchemy.dialects.postgresql import JSONB

from academic_records.core.database import store_errors
from academic_records.core.enums import UserRole
from academic_records.core.exceptions import NotFound, ValidationError
from academic_records.core.logging import logger
from academic_records.models import CommissionMembership, TutoringAssignment, User
from academic_records.schemas.identity import (
    AdministratorIdentity,
    HomeroomGroup,
    HomeroomTutor,
    Identity,
    StudentIdentity,
    TeacherIdentity,
)
from .base_service import BaseService


def json_list_contains(dialect_name: str, column, value):
    """SQL test for ``value`` being an element of a JSON list column; None where the dialect has no such test"""
    if dialect_name == "postgresql":
        return cast(column, JSONB).contains([value])
    if dialect_name == "sqlite":
        elements = func.json_each(column).table_valued("value")
        return select(elements.c.value).where(elements.c.value == value).exists()
    return None


class IdentityService(BaseService):
    """Reads the relationship graph: users, commission memberships and tutoring assignments"""

    async def get_user(self, user_id: int) -> User:
        with store_errors("user lookup"):
            user = await self.db.get(User, user_id)
        if user is None:
            raise NotFound(f"User {user_id} not found", field="user_id")
        return user

    async def resolve_identity(self, user_id: int) -> Identity:
        """
        Build the read-only identity snapshot for one request.

        Args:
            user_id: id handed over by the external identity provider

        Raises:
            NotFound: If the user does not exist
            StoreUnavailable: If the store cannot be reached
        """
        user = await self.get_user(user_id)
        role = UserRole(user.role)

        if role == UserRole.ADMINISTRATOR:
            return AdministratorIdentity(user_id=user.id, institution_id=user.institution_id)

        commission_ids = await self.commission_ids_for(user.id)

        if role == UserRole.TEACHER:
            assignments = await self.tutoring_assignments_for_teacher(user.id, user.institution_id)
            return TeacherIdentity(
                user_id=user.id,
                institution_id=user.institution_id,
                courses=tuple(user.courses or ()),
                commission_ids=tuple(commission_ids),
                tutoring=tuple(
                    HomeroomGroup(grade_level=a.grade_level, section=a.section) for a in assignments
                ),
            )

        if role == UserRole.STUDENT:
            assignments = await self.tutoring_assignments_for_groups(
                user.institution_id, user.grades or (), user.sections or ()
            )
            return StudentIdentity(
                user_id=user.id,
                institution_id=user.institution_id,
                grades=tuple(user.grades or ()),
                sections=tuple(user.sections or ()),
                courses=tuple(user.courses or ()),
                commission_ids=tuple(commission_ids),
                homeroom_tutors=tuple(
                    HomeroomTutor(grade_level=a.grade_level, section=a.section, teacher_id=a.teacher_id)
                    for a in assignments
                ),
            )

        raise ValidationError(f"Unsupported role: {user.role}", field="role")

    async def commission_ids_for(self, user_id: int) -> List[int]:
        with store_errors("commission membership lookup"):
            result = await self.db.execute(
                select(CommissionMembership.commission_id)
                .where(CommissionMembership.user_id == user_id)
                .order_by(CommissionMembership.commission_id)
            )
        return list(result.scalars().all())

    async def tutoring_assignments_for_teacher(
        self,
        teacher_id: int,
        institution_id: int
    ) -> List[TutoringAssignment]:
        with store_errors("tutoring assignment lookup"):
            result = await self.db.execute(
                select(TutoringAssignment)
                .where(
                    TutoringAssignment.teacher_id == teacher_id,
                    TutoringAssignment.institution_id == institution_id
                )
                .order_by(TutoringAssignment.grade_level, TutoringAssignment.section)
            )
        return list(result.scalars().all())

    async def tutoring_assignments_for_groups(
        self,
        institution_id: int,
        grades: Sequence[str],
        sections: Sequence[str]
    ) -> List[TutoringAssignment]:
        """Assignments covering any (grade, section) pair formed from the given lists"""
        if not grades or not sections:
            return []
        with store_errors("tutoring assignment lookup"):
            result = await self.db.execute(
                select(TutoringAssignment)
                .where(
                    TutoringAssignment.institution_id == institution_id,
                    TutoringAssignment.grade_level.in_(list(grades)),
                    TutoringAssignment.section.in_(list(sections))
                )
                .order_by(TutoringAssignment.grade_level, TutoringAssignment.section, TutoringAssignment.teacher_id)
            )
        return list(result.scalars().all())

    async def holds_tutoring_assignment(
        self,
        teacher_id: int,
        institution_id: int,
        grade_level: str,
        section: str
    ) -> bool:
        with store_errors("tutoring assignment lookup"):
            result = await self.db.execute(
                select(TutoringAssignment.id).where(
                    TutoringAssignment.teacher_id == teacher_id,
                    TutoringAssignment.institution_id == institution_id,
                    TutoringAssignment.grade_level == grade_level,
                    TutoringAssignment.section == section
                )
            )
        return result.first() is not None

    async def students_in_group(
        self,
        institution_id: int,
        grade_level: str,
        section: str
    ) -> List[User]:
        """Students of the institution enrolled in both ``grade_level`` and ``section``"""
        query = (
            select(User)
            .where(User.institution_id == institution_id, User.role == UserRole.STUDENT)
            .order_by(User.last_name, User.name, User.id)
        )
        dialect_name = self.db.get_bind().dialect.name
        in_grade = json_list_contains(dialect_name, User.grades, grade_level)
        in_section = json_list_contains(dialect_name, User.sections, section)
        if in_grade is not None:
            query = query.where(in_grade, in_section)

        with store_errors("group roster lookup"):
            result = await self.db.execute(query)
        students = list(result.scalars().all())
        if in_grade is None:
            students = [
                student for student in students
                if grade_level in (student.grades or ()) and section in (student.sections or ())
            ]
        logger.debug(f"Group {grade_level}/{section} in institution {institution_id}: {len(students)} students")
        return students

    async def commission_member_ids(self, commission_id: int, role: Optional[UserRole] = None) -> List[int]:
        query = (
            select(CommissionMembership.user_id)
            .join(User, User.id == CommissionMembership.user_id)
            .where(CommissionMembership.commission_id == commission_id)
            .order_by(CommissionMembership.user_id)
        )
        if role is not None:
            query = query.where(User.role == role)
        with store_errors("commission roster lookup"):
            result = await self.db.execute(query)
        return list(result.scalars().all())

    async def commission_student_ids(self, commission_id: int) -> List[int]:
        return await self.commission_member_ids(commission_id, UserRole.STUDENT)

    async def commission_teacher_ids(self, commission_id: int) -> List[int]:
        return await self.commission_member_ids(commission_id, UserRole.TEACHER)
