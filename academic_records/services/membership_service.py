# academic_records/services/membership_service.py
from typing import Any, List, Mapping, Optional, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError

from academic_records.core.database import store_errors
from academic_records.core.enums import MembershipAction, UserRole
from academic_records.core.exceptions import NotFound, ValidationError
from academic_records.core.logging import log_event, logger
from academic_records.models import (
    Announcement,
    Commission,
    CommissionAttendance,
    CommissionMembership,
    Institution,
    TutoringAssignment,
    User,
)
from academic_records.schemas.commission import (
    CommissionCreate,
    CommissionRoster,
    CommissionUpdate,
    TutoringAssignmentCreate,
)
from academic_records.schemas.identity import StudentIdentity, TeacherIdentity
from academic_records.schemas.user import user_create_adapter
from .base_service import BaseService
from .identity_service import IdentityService
from .visibility import require_identity


def _validate(schema, payload: Any):
    """Parse a payload into ``schema``, naming the first offending field on failure"""
    if isinstance(payload, BaseModel) and (not isinstance(schema, type) or isinstance(payload, schema)):
        return payload
    try:
        if isinstance(schema, type):
            return schema.model_validate(payload)
        return schema.validate_python(payload)
    except PydanticValidationError as e:
        errors = e.errors(include_url=False, include_context=False)
        loc = errors[0].get("loc", ()) if errors else ()
        # Tagged unions prefix the location with the tag value; list items append an index
        field = next((part for part in reversed(loc) if isinstance(part, str)), None)
        raise ValidationError(
            f"Invalid field '{field}'",
            field=field,
            details={"errors": errors}
        ) from e


class MembershipService(BaseService):
    """
    Administration of institutions, users, commissions and tutoring assignments.

    Commission rosters and a user's commission list are both read from the
    CommissionMembership table, so adding or removing a member is a single write.
    """

    def __init__(self, db):
        super().__init__(db)
        self.identity_service = IdentityService(db)

    async def create_institution(self, name: str) -> Institution:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Institution name is required", field="name")

        with store_errors("institution creation"):
            existing = await self.db.execute(select(Institution.id).where(Institution.name == name))
            if existing.first() is not None:
                raise ValidationError(f"Institution '{name}' already exists", field="name")
            institution = Institution(name=name)
            self.db.add(institution)
            await self.db.commit()

        log_event(logger, "institution.created", institution_id=institution.id)
        return institution

    async def create_user(
        self,
        payload: Union[BaseModel, Mapping[str, Any]],
        institution_id: int,
        identity: Any = None
    ) -> User:
        """
        Create a teacher, student or administrator.

        Args:
            payload: role tagged user payload
            institution_id: institution the user belongs to
            identity: acting administrator; None for trusted system callers such as seed scripts

        Raises:
            PermissionDenied: If ``identity`` is not an administrator of the institution
            ValidationError: If the payload is invalid or the code is taken
            NotFound: If the institution does not exist
        """
        if identity is not None:
            identity = self.require_administrator(identity)
            self.require_same_institution(identity, institution_id)
        data = _validate(user_create_adapter, payload)

        with store_errors("user creation"):
            if await self.db.get(Institution, institution_id) is None:
                raise NotFound(f"Institution {institution_id} not found", field="institution_id")
            existing = await self.db.execute(select(User.id).where(User.code == data.code))
            if existing.first() is not None:
                raise ValidationError(f"User code '{data.code}' already exists", field="code")

            user = User(
                institution_id=institution_id,
                code=data.code,
                role=UserRole(data.role),
                name=data.name,
                last_name=data.last_name,
                phone=data.phone,
                email=data.email,
                grades=list(getattr(data, "grades", [])),
                sections=list(getattr(data, "sections", [])),
                courses=list(getattr(data, "courses", [])),
            )
            self.db.add(user)
            try:
                await self.db.commit()
            except IntegrityError as e:
                await self.db.rollback()
                raise ValidationError(f"User code '{data.code}' already exists", field="code") from e

        log_event(logger, "user.created", user_id=user.id, role=data.role, institution_id=institution_id)
        return user

    async def _get_commission(self, identity: Any, commission_id: int) -> Commission:
        with store_errors("commission lookup"):
            commission = await self.db.get(Commission, commission_id)
        if commission is None:
            raise NotFound(f"Commission {commission_id} not found", field="commission_id")
        self.require_same_institution(identity, commission.institution_id, field="commission_id")
        return commission

    async def _name_taken(self, institution_id: int, name: str, exclude_id: Optional[int] = None) -> bool:
        query = select(Commission.id).where(
            Commission.institution_id == institution_id,
            Commission.name == name
        )
        if exclude_id is not None:
            query = query.where(Commission.id != exclude_id)
        with store_errors("commission lookup"):
            result = await self.db.execute(query)
        return result.first() is not None

    async def create_commission(self, identity: Any, payload: Union[CommissionCreate, Mapping[str, Any]]) -> Commission:
        identity = self.require_administrator(identity)
        data = _validate(CommissionCreate, payload)

        if await self._name_taken(identity.institution_id, data.name):
            raise ValidationError(f"Commission '{data.name}' already exists", field="name")

        commission = Commission(
            institution_id=identity.institution_id,
            name=data.name,
            description=data.description,
            is_active=data.is_active,
        )
        with store_errors("commission creation"):
            self.db.add(commission)
            try:
                await self.db.commit()
            except IntegrityError as e:
                await self.db.rollback()
                raise ValidationError(f"Commission '{data.name}' already exists", field="name") from e

        log_event(logger, "commission.created", commission_id=commission.id, institution_id=identity.institution_id)
        return commission

    async def update_commission(
        self,
        identity: Any,
        commission_id: int,
        payload: Union[CommissionUpdate, Mapping[str, Any]]
    ) -> Commission:
        identity = self.require_administrator(identity)
        data = _validate(CommissionUpdate, payload)
        commission = await self._get_commission(identity, commission_id)

        changes = data.model_dump(exclude_none=True)
        if "name" in changes and await self._name_taken(commission.institution_id, changes["name"], commission.id):
            raise ValidationError(f"Commission '{changes['name']}' already exists", field="name")

        for name, value in changes.items():
            setattr(commission, name, value)
        with store_errors("commission update"):
            await self.db.commit()

        log_event(logger, "commission.updated", commission_id=commission.id, fields=sorted(changes))
        return commission

    async def delete_commission(self, identity: Any, commission_id: int) -> None:
        """
        Delete a commission together with its memberships and announcements.

        Raises:
            ValidationError: If attendance was already taken for the commission;
                deactivate it instead so the history stays readable
        """
        identity = self.require_administrator(identity)
        commission = await self._get_commission(identity, commission_id)

        with store_errors("commission deletion"):
            taken = await self.db.execute(
                select(CommissionAttendance.id)
                .where(CommissionAttendance.commission_id == commission.id)
                .limit(1)
            )
            if taken.first() is not None:
                raise ValidationError(
                    "Commission has attendance records; deactivate it instead",
                    field="commission_id"
                )

            await self.db.execute(
                delete(CommissionMembership).where(CommissionMembership.commission_id == commission.id)
            )
            await self.db.execute(
                delete(Announcement).where(Announcement.commission_id == commission.id)
            )
            await self.db.execute(delete(Commission).where(Commission.id == commission.id))
            await self.db.commit()
        self.db.expunge(commission)

        log_event(logger, "commission.deleted", commission_id=commission_id, institution_id=identity.institution_id)

    async def _change_membership(
        self,
        identity: Any,
        commission_id: int,
        user_id: int,
        action: MembershipAction
    ) -> None:
        identity = self.require_administrator(identity)
        commission = await self._get_commission(identity, commission_id)
        user = await self.identity_service.get_user(user_id)
        self.require_same_institution(identity, user.institution_id, field="user_id")
        if UserRole(user.role) not in (UserRole.TEACHER, UserRole.STUDENT):
            raise ValidationError("Only teachers and students can join a commission", field="user_id")

        with store_errors("commission membership update"):
            existing = await self.db.execute(
                select(CommissionMembership).where(
                    CommissionMembership.commission_id == commission.id,
                    CommissionMembership.user_id == user.id
                )
            )
            membership = existing.scalar_one_or_none()

            if action == MembershipAction.ADD:
                if membership is not None:
                    return
                self.db.add(CommissionMembership(commission_id=commission.id, user_id=user.id))
                try:
                    await self.db.commit()
                except IntegrityError:
                    # Added concurrently; the pair is unique so the membership exists
                    await self.db.rollback()
            else:
                if membership is None:
                    raise NotFound(
                        f"User {user_id} is not a member of commission {commission_id}",
                        field="user_id"
                    )
                await self.db.execute(
                    delete(CommissionMembership).where(CommissionMembership.id == membership.id)
                )
                await self.db.commit()
                self.db.expunge(membership)

        log_event(
            logger,
            f"commission.member_{action.value}",
            commission_id=commission.id,
            user_id=user.id,
            role=UserRole(user.role).value
        )

    async def add_commission_member(self, identity: Any, commission_id: int, user_id: int) -> None:
        await self._change_membership(identity, commission_id, user_id, MembershipAction.ADD)

    async def remove_commission_member(self, identity: Any, commission_id: int, user_id: int) -> None:
        await self._change_membership(identity, commission_id, user_id, MembershipAction.REMOVE)

    async def get_commission_roster(self, commission: Commission) -> CommissionRoster:
        return CommissionRoster(
            id=commission.id,
            name=commission.name,
            description=commission.description or "",
            is_active=commission.is_active,
            teacher_ids=await self.identity_service.commission_teacher_ids(commission.id),
            student_ids=await self.identity_service.commission_student_ids(commission.id),
        )

    async def list_commissions(self, identity: Any) -> List[CommissionRoster]:
        """Teachers see the commissions they belong to; everyone else the institution's"""
        identity = require_identity(identity)
        query = (
            select(Commission)
            .where(Commission.institution_id == identity.institution_id)
            .order_by(Commission.name)
        )
        if isinstance(identity, TeacherIdentity):
            query = query.join(
                CommissionMembership, CommissionMembership.commission_id == Commission.id
            ).where(CommissionMembership.user_id == identity.user_id)

        with store_errors("commission listing"):
            result = await self.db.execute(query)
        return [await self.get_commission_roster(c) for c in result.scalars().all()]

    async def create_tutoring_assignment(
        self,
        identity: Any,
        payload: Union[TutoringAssignmentCreate, Mapping[str, Any]]
    ) -> TutoringAssignment:
        identity = self.require_administrator(identity)
        data = _validate(TutoringAssignmentCreate, payload)
        teacher = await self.identity_service.get_user(data.teacher_id)
        self.require_same_institution(identity, teacher.institution_id, field="teacher_id")
        if UserRole(teacher.role) != UserRole.TEACHER:
            raise ValidationError("Tutoring assignments require a teacher", field="teacher_id")

        if await self.identity_service.holds_tutoring_assignment(
            teacher.id, identity.institution_id, data.grade_level, data.section
        ):
            raise ValidationError(
                f"Teacher already tutors {data.grade_level}/{data.section}",
                field="teacher_id"
            )

        assignment = TutoringAssignment(
            institution_id=identity.institution_id,
            teacher_id=teacher.id,
            grade_level=data.grade_level,
            section=data.section,
        )
        with store_errors("tutoring assignment creation"):
            self.db.add(assignment)
            try:
                await self.db.commit()
            except IntegrityError as e:
                await self.db.rollback()
                raise ValidationError(
                    f"Teacher already tutors {data.grade_level}/{data.section}",
                    field="teacher_id"
                ) from e

        log_event(
            logger,
            "tutoring.assigned",
            teacher_id=teacher.id,
            grade_level=data.grade_level,
            section=data.section
        )
        return assignment

    async def delete_tutoring_assignment(self, identity: Any, assignment_id: int) -> None:
        identity = self.require_administrator(identity)
        with store_errors("tutoring assignment lookup"):
            assignment = await self.db.get(TutoringAssignment, assignment_id)
        if assignment is None:
            raise NotFound(f"Tutoring assignment {assignment_id} not found", field="assignment_id")
        self.require_same_institution(identity, assignment.institution_id, field="assignment_id")

        with store_errors("tutoring assignment deletion"):
            await self.db.execute(delete(TutoringAssignment).where(TutoringAssignment.id == assignment.id))
            await self.db.commit()
        self.db.expunge(assignment)

        log_event(logger, "tutoring.unassigned", assignment_id=assignment_id, teacher_id=assignment.teacher_id)

    async def list_tutoring_assignments(self, identity: Any) -> List[TutoringAssignment]:
        identity = require_identity(identity)
        if isinstance(identity, TeacherIdentity):
            return await self.identity_service.tutoring_assignments_for_teacher(
                identity.user_id, identity.institution_id
            )
        if isinstance(identity, StudentIdentity):
            return await self.identity_service.tutoring_assignments_for_groups(
                identity.institution_id, identity.grades, identity.sections
            )

        identity = self.require_administrator(identity)
        with store_errors("tutoring assignment listing"):
            result = await self.db.execute(
                select(TutoringAssignment)
                .where(TutoringAssignment.institution_id == identity.institution_id)
                .order_by(TutoringAssignment.grade_level, TutoringAssignment.section, TutoringAssignment.teacher_id)
            )
        return list(result.scalars().all())
