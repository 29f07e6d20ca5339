# academic_records/services/registration_service.py
import logging
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from academic_records.core.config import settings
from academic_records.core.database import store_errors
from academic_records.core.enums import RecordKind, UserRole
from academic_records.core.exceptions import (
    NotFound,
    RegistrationConflict,
    ValidationError,
)
from academic_records.core.logging import log_event, log_function_call, logger
from academic_records.core.natural_keys import NaturalKey, natural_key_for
from academic_records.models import Commission, User, model_for
from academic_records.schemas.registration import (
    CommissionAttendanceContext,
    ExistingRosterEntry,
    ExistingRosterFlags,
    RegisteredItem,
    RegistrationContext,
    RegistrationResult,
    RosterItem,
    SkippedItem,
    parse_context,
)
from .base_service import BaseService
from .identity_service import IdentityService
from .visibility import authorize_write

CREATED = "created"
UPDATED = "updated"

_ITEM_FIELD_ALIASES = {
    "studentId": "student_id",
    "student_id": "student_id",
    "comment": "comment",
}


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


class RegistrationService(BaseService):
    """
    Idempotent bulk registration of per-student facts.

    Every roster item is keyed by its natural key and written in its own
    transaction: an existing record is updated in place, a missing one is
    created. Resubmitting the same roster therefore never duplicates rows.
    """

    def __init__(self, db: AsyncSession, conflict_retries: Optional[int] = None):
        super().__init__(db)
        self.conflict_retries = (
            settings.REGISTRATION_CONFLICT_RETRIES if conflict_retries is None else conflict_retries
        )
        self.identity_service = IdentityService(db)

    @log_function_call(logger)
    async def register(
        self,
        context: Union[RegistrationContext, Mapping[str, Any]],
        roster: Sequence[Union[RosterItem, Mapping[str, Any]]],
        identity: Any = None,
        kind: Optional[RecordKind] = None
    ) -> RegistrationResult:
        """
        Create or update one record per roster item.

        Args:
            context: fields shared by every item (a context model, or a mapping plus ``kind``)
            roster: per-student items carrying ``student_id`` and the value
            identity: when given, the write is authorized for it before anything else
            kind: record kind, required only when ``context`` is a mapping

        Returns:
            RegistrationResult with created, updated and skipped items

        Raises:
            ValidationError: If the context or the roster as a whole is invalid
            PermissionDenied: If ``identity`` may not write this context
            NotFound: If the commission or the teacher does not exist in the institution
            StoreUnavailable: If the store fails; items committed before stay committed
        """
        context = self._coerce_context(context, kind)
        natural_key = natural_key_for(context.kind)
        natural_key.context_key(context)

        if roster is None or isinstance(roster, (str, bytes, Mapping)):
            raise ValidationError("Roster must be a list of items", field="roster")
        roster = list(roster)
        if not roster:
            raise ValidationError("Roster cannot be empty", field="roster")

        if identity is not None:
            authorize_write(identity, context.kind, context)

        result = RegistrationResult(kind=context.kind)
        parsed: List[Tuple[int, RosterItem]] = []
        for index, raw in enumerate(roster):
            item, skipped = self._parse_item(index, raw, context)
            if skipped is not None:
                self._skip(result, skipped)
            else:
                parsed.append((index, item))

        if isinstance(context, CommissionAttendanceContext):
            await self._require_commission(context)
        await self._require_teacher(context)
        known_students = await self._institution_student_ids(
            context.institution_id, (item.student_id for _, item in parsed)
        )

        for index, item in parsed:
            if item.student_id not in known_students:
                self._skip(result, SkippedItem(
                    index=index,
                    student_id=item.student_id,
                    field="student_id",
                    error=NotFound.error_code,
                    reason=f"Student {item.student_id} not found in institution {context.institution_id}"
                ))
                continue

            key = natural_key.key_for(context, item.student_id)
            try:
                outcome, record_id = await self._register_item(natural_key, key, context, item)
            except (RegistrationConflict, ValidationError) as e:
                self._skip(result, SkippedItem(
                    index=index,
                    student_id=item.student_id,
                    field=e.field,
                    error=e.error_code,
                    reason=e.message,
                    key=getattr(e, "key", None)
                ))
                continue

            registered = RegisteredItem(
                student_id=item.student_id,
                record_id=record_id,
                value=item.value,
                key=key
            )
            if outcome == CREATED:
                result.created.append(registered)
            else:
                result.updated.append(registered)
            log_event(
                logger,
                f"registration.item_{outcome}",
                kind=context.kind.value,
                student_id=item.student_id,
                record_id=record_id,
                teacher_id=context.teacher_id
            )

        log_event(
            logger,
            "registration.completed",
            kind=context.kind.value,
            institution_id=context.institution_id,
            teacher_id=context.teacher_id,
            created=len(result.created),
            updated=len(result.updated),
            skipped=len(result.skipped),
            conflicts=len(result.conflicts)
        )
        return result

    @log_function_call(logger)
    async def check_existing(
        self,
        context: Union[RegistrationContext, Mapping[str, Any]],
        student_ids: Optional[Iterable[int]] = None,
        kind: Optional[RecordKind] = None
    ) -> ExistingRosterFlags:
        """
        Report, per expected student, whether a record already exists for the context.

        The expected students are the explicit ``student_ids`` or, when omitted,
        the students of the context's grade/section (or of its commission).
        """
        context = self._coerce_context(context, kind)
        natural_key = natural_key_for(context.kind)
        context_key = natural_key.context_key(context)
        model = model_for(context.kind)

        if isinstance(context, CommissionAttendanceContext):
            await self._require_commission(context)
        if student_ids is None:
            if isinstance(context, CommissionAttendanceContext):
                student_ids = await self.identity_service.commission_student_ids(context.commission_id)
            else:
                students = await self.identity_service.students_in_group(
                    context.institution_id, context.grade_level, context.section
                )
                student_ids = [student.id for student in students]
        student_ids = list(dict.fromkeys(student_ids))

        records = {}
        if student_ids:
            with store_errors("check existing"):
                rows = await self.db.execute(
                    select(model).where(
                        natural_key.context_predicate(context).compile(model),
                        model.student_id.in_(student_ids)
                    )
                )
            records = {record.student_id: record for record in rows.scalars().all()}

        entries = []
        for student_id in student_ids:
            record = records.get(student_id)
            if record is None:
                entries.append(ExistingRosterEntry(student_id=student_id, exists=False))
                continue
            entries.append(ExistingRosterEntry(
                student_id=student_id,
                exists=True,
                record_id=record.id,
                value=_plain(getattr(record, context.value_field)),
                comment=getattr(record, "comment", None),
                teacher_id=record.teacher_id
            ))

        log_event(
            logger,
            "registration.check_existing",
            logging.DEBUG,
            kind=context.kind.value,
            students=len(entries),
            existing=sum(1 for entry in entries if entry.exists)
        )
        return ExistingRosterFlags(kind=context.kind, context_key=context_key, entries=entries)

    @staticmethod
    def _coerce_context(
        context: Union[RegistrationContext, Mapping[str, Any]],
        kind: Optional[RecordKind]
    ) -> RegistrationContext:
        if isinstance(context, RegistrationContext) and kind is None:
            return context
        if kind is None:
            raise ValidationError("Record kind is required for a mapping context", field="kind")
        return parse_context(kind, context)

    @staticmethod
    def _parse_item(
        index: int,
        raw: Any,
        context: RegistrationContext
    ) -> Tuple[Optional[RosterItem], Optional[SkippedItem]]:
        """Validate one roster entry; problems become a skipped entry instead of an exception"""
        value_field = context.value_field
        try:
            item = raw if isinstance(raw, RosterItem) else RosterItem.model_validate(raw)
        except PydanticValidationError as e:
            errors = e.errors(include_url=False, include_context=False)
            loc = str(errors[0]["loc"][0]) if errors and errors[0].get("loc") else None
            field = _ITEM_FIELD_ALIASES.get(loc, value_field if loc else None)
            student_id = raw.get("student_id", raw.get("studentId")) if isinstance(raw, Mapping) else None
            return None, SkippedItem(
                index=index,
                student_id=student_id if isinstance(student_id, int) else None,
                field=field,
                error=ValidationError.error_code,
                reason=errors[0]["msg"] if errors else "Invalid roster item"
            )

        if item.student_id is None:
            return None, SkippedItem(
                index=index,
                field="student_id",
                error=ValidationError.error_code,
                reason="Missing student_id"
            )
        if not item.value:
            return None, SkippedItem(
                index=index,
                student_id=item.student_id,
                field=value_field,
                error=ValidationError.error_code,
                reason=f"Missing {value_field}"
            )
        if context.status_enum is not None:
            allowed = [member.value for member in context.status_enum]
            if item.value not in allowed:
                return None, SkippedItem(
                    index=index,
                    student_id=item.student_id,
                    field=value_field,
                    error=ValidationError.error_code,
                    reason=f"Invalid {value_field} '{item.value}', expected one of {allowed}"
                )
        return item, None

    @staticmethod
    def _skip(result: RegistrationResult, skipped: SkippedItem) -> None:
        result.skipped.append(skipped)
        log_event(
            logger,
            "registration.item_skipped",
            logging.WARNING,
            kind=result.kind.value,
            index=skipped.index,
            student_id=skipped.student_id,
            field=skipped.field,
            error=skipped.error
        )

    async def _require_commission(self, context: CommissionAttendanceContext) -> None:
        with store_errors("commission lookup"):
            result = await self.db.execute(
                select(Commission.id).where(
                    Commission.id == context.commission_id,
                    Commission.institution_id == context.institution_id
                )
            )
        if result.first() is None:
            raise NotFound(
                f"Commission {context.commission_id} not found in institution {context.institution_id}",
                field="commission_id"
            )

    async def _institution_student_ids(self, institution_id: int, student_ids: Iterable[int]) -> Set[int]:
        candidates = list(dict.fromkeys(student_ids))
        if not candidates:
            return set()
        with store_errors("roster student lookup"):
            result = await self.db.execute(
                select(User.id).where(
                    User.id.in_(candidates),
                    User.institution_id == institution_id,
                    User.role == UserRole.STUDENT
                )
            )
        return set(result.scalars().all())

    async def _require_teacher(self, context: RegistrationContext) -> None:
        with store_errors("teacher lookup"):
            result = await self.db.execute(
                select(User.id).where(
                    User.id == context.teacher_id,
                    User.institution_id == context.institution_id,
                    User.role == UserRole.TEACHER
                )
            )
        if result.first() is None:
            raise NotFound(
                f"Teacher {context.teacher_id} not found in institution {context.institution_id}",
                field="teacher_id"
            )

    async def _is_key_collision(self, natural_key: NaturalKey, key: Dict[str, Any], error: IntegrityError) -> bool:
        """True when the violation is the natural-key constraint rather than some other integrity rule"""
        if natural_key.constraint_name in str(error.orig):
            return True
        model = model_for(natural_key.kind)
        result = await self.db.execute(
            select(model.id).where(natural_key.as_predicate(key).compile(model))
        )
        return result.first() is not None

    async def _find_by_key(self, natural_key: NaturalKey, key: Dict[str, Any]):
        model = model_for(natural_key.kind)
        result = await self.db.execute(
            select(model).where(natural_key.as_predicate(key).compile(model))
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _values(context: RegistrationContext, item: RosterItem, creating: bool) -> Dict[str, Any]:
        values: Dict[str, Any] = {context.value_field: item.value, "teacher_id": context.teacher_id}
        if context.kind == RecordKind.GRADE:
            # Resubmitting a score without a comment keeps the comment already stored
            if item.comment is not None:
                values["comment"] = item.comment
            elif creating:
                values["comment"] = ""
        return values

    async def _register_item(
        self,
        natural_key: NaturalKey,
        key: Dict[str, Any],
        context: RegistrationContext,
        item: RosterItem
    ) -> Tuple[str, int]:
        """
        Read by key, then update or create, then commit. A uniqueness violation on
        create means a concurrent writer got there first: roll back and retry the
        item, which now finds the record and updates it. Any other integrity
        violation rejects the item with a ValidationError.
        """
        model = model_for(natural_key.kind)
        attempts = 0
        while True:
            with store_errors(f"{natural_key.kind.value} registration"):
                try:
                    record = await self._find_by_key(natural_key, key)
                    if record is None:
                        record = model(**key, **self._values(context, item, creating=True))
                        self.db.add(record)
                        await self.db.flush()
                        outcome = CREATED
                    else:
                        for name, value in self._values(context, item, creating=False).items():
                            setattr(record, name, value)
                        await self.db.flush()
                        outcome = UPDATED
                    record_id = record.id
                    await self.db.commit()
                    return outcome, record_id
                except IntegrityError as e:
                    await self.db.rollback()
                    if not await self._is_key_collision(natural_key, key, e):
                        log_event(
                            logger,
                            "registration.rejected",
                            logging.ERROR,
                            kind=natural_key.kind.value,
                            student_id=key["student_id"],
                            error=str(e.orig)
                        )
                        raise ValidationError(
                            f"Record for student {key['student_id']} rejected by the store: {e.orig}"
                        )
                    if attempts >= self.conflict_retries:
                        log_event(
                            logger,
                            "registration.conflict",
                            logging.ERROR,
                            kind=natural_key.kind.value,
                            attempts=attempts + 1,
                            key=key
                        )
                        raise RegistrationConflict(key)
                    attempts += 1
                    log_event(
                        logger,
                        "registration.conflict_retry",
                        logging.WARNING,
                        kind=natural_key.kind.value,
                        attempt=attempts,
                        student_id=key["student_id"]
                    )
                except Exception:
                    await self.db.rollback()
                    raise
