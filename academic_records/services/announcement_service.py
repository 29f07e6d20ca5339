# academic_records/services/announcement_service.py
from typing import Any, Mapping, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select

from academic_records.core.database import store_errors
from academic_records.core.enums import RecordKind, UserRole
from academic_records.core.exceptions import NotFound, PermissionDenied, ValidationError
from academic_records.core.logging import log_event, logger
from academic_records.models import Announcement, Commission, TutoringAnnouncement, User
from academic_records.schemas.announcement import AnnouncementCreate, TutoringAnnouncementCreate
from .base_service import BaseService
from .identity_service import IdentityService
from .visibility import authorize_write, require_identity


def _parse(schema, payload):
    if isinstance(payload, schema):
        return payload
    try:
        return schema.model_validate(payload)
    except PydanticValidationError as e:
        errors = e.errors(include_url=False, include_context=False)
        field = str(errors[0]["loc"][0]) if errors and errors[0].get("loc") else None
        raise ValidationError(f"Invalid announcement field '{field}'", field=field) from e


class AnnouncementService(BaseService):
    def __init__(self, db):
        super().__init__(db)
        self.identity_service = IdentityService(db)

    async def post_announcement(
        self,
        identity: Any,
        payload: Union[AnnouncementCreate, Mapping[str, Any]]
    ) -> Announcement:
        """
        Post an announcement from ``identity`` to the audience its scoping fields describe.

        Raises:
            PermissionDenied: If the sender is neither a teacher nor an administrator
            NotFound: If the addressed student or commission is not in the institution
        """
        identity = require_identity(identity)
        data = _parse(AnnouncementCreate, payload)
        authorize_write(identity, RecordKind.ANNOUNCEMENT, {
            "sender_id": identity.user_id,
            "institution_id": identity.institution_id,
        })

        with store_errors("announcement audience lookup"):
            if data.commission_id is not None:
                found = await self.db.execute(
                    select(Commission.id).where(
                        Commission.id == data.commission_id,
                        Commission.institution_id == identity.institution_id
                    )
                )
                if found.first() is None:
                    raise NotFound(f"Commission {data.commission_id} not found", field="commission_id")
            if data.student_id is not None:
                found = await self.db.execute(
                    select(User.id).where(
                        User.id == data.student_id,
                        User.institution_id == identity.institution_id,
                        User.role == UserRole.STUDENT
                    )
                )
                if found.first() is None:
                    raise NotFound(f"Student {data.student_id} not found", field="student_id")

        announcement = Announcement(
            institution_id=identity.institution_id,
            sender_id=identity.user_id,
            **data.model_dump()
        )
        with store_errors("announcement creation"):
            self.db.add(announcement)
            await self.db.commit()

        log_event(
            logger,
            "announcement.posted",
            announcement_id=announcement.id,
            sender_id=identity.user_id,
            institution_wide=data.is_institution_wide
        )
        return announcement

    async def post_tutoring_announcement(
        self,
        identity: Any,
        payload: Union[TutoringAnnouncementCreate, Mapping[str, Any]]
    ) -> TutoringAnnouncement:
        """
        Post to a homeroom group. The sender's tutoring assignment is checked
        against the identity snapshot and then again against the store.
        """
        identity = require_identity(identity)
        data = _parse(TutoringAnnouncementCreate, payload)
        authorize_write(identity, RecordKind.TUTORING_ANNOUNCEMENT, {
            "sender_id": identity.user_id,
            "institution_id": identity.institution_id,
            "grade_level": data.grade_level,
            "section": data.section,
        })

        holds = await self.identity_service.holds_tutoring_assignment(
            identity.user_id, identity.institution_id, data.grade_level, data.section
        )
        if not holds:
            raise PermissionDenied(
                f"Teacher no longer tutors {data.grade_level}/{data.section}",
                field="grade_level",
                details={"grade_level": data.grade_level, "section": data.section}
            )

        announcement = TutoringAnnouncement(
            institution_id=identity.institution_id,
            sender_id=identity.user_id,
            **data.model_dump()
        )
        with store_errors("tutoring announcement creation"):
            self.db.add(announcement)
            await self.db.commit()

        log_event(
            logger,
            "tutoring_announcement.posted",
            announcement_id=announcement.id,
            sender_id=identity.user_id,
            grade_level=data.grade_level,
            section=data.section
        )
        return announcement
