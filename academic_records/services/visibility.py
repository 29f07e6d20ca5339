"""Role-aware record visibility.

``resolve_visibility`` turns an identity plus optional filters into the
predicate describing exactly the records that identity may read.
``authorize_write`` guards the write paths; every write it allows is also
readable by the writer.
"""
import logging
from typing import Any, Mapping, Optional, Union

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from academic_records.core.enums import RecordKind
from academic_records.core.exceptions import PermissionDenied, ValidationError
from academic_records.core.logging import log_event, logger
from academic_records.core.predicates import (
    ALWAYS,
    NEVER,
    Eq,
    Predicate,
    Range,
    all_of,
    any_of,
    eq_or_null,
    in_,
)
from academic_records.models import model_for
from academic_records.schemas.filters import RecordFilters
from academic_records.schemas.identity import (
    AdministratorIdentity,
    Identity,
    StudentIdentity,
    TeacherIdentity,
)

_identity_adapter = TypeAdapter(Identity)

AUDIENCE_FIELDS = ("grade_level", "section", "course", "student_id", "commission_id")


def _coerce_kind(kind: Union[RecordKind, str]) -> RecordKind:
    try:
        return RecordKind(kind)
    except ValueError:
        raise ValidationError(f"Unknown record kind: {kind}", field="kind") from None


def coerce_identity(identity: Any):
    """Known identity snapshot, or None when the role cannot be recognised"""
    if isinstance(identity, (TeacherIdentity, StudentIdentity, AdministratorIdentity)):
        return identity
    if isinstance(identity, Mapping):
        try:
            return _identity_adapter.validate_python(dict(identity))
        except PydanticValidationError:
            return None
    return None


def require_identity(identity: Any):
    """Known identity snapshot; an unrecognised role is refused"""
    known = coerce_identity(identity)
    if known is None:
        raise PermissionDenied("Unrecognised role", field="role")
    return known


def _coerce_filters(filters: Union[RecordFilters, Mapping[str, Any], None]) -> Optional[RecordFilters]:
    if filters is None or isinstance(filters, RecordFilters):
        return filters
    try:
        return RecordFilters.model_validate(dict(filters))
    except PydanticValidationError as e:
        errors = e.errors(include_url=False, include_context=False)
        field = str(errors[0]["loc"][0]) if errors and errors[0].get("loc") else None
        raise ValidationError(f"Invalid filter '{field}'", field=field) from e


def _group(grade_level: str, section: str) -> Predicate:
    return all_of(Eq("grade_level", grade_level), Eq("section", section))


def institution_wide() -> Predicate:
    return all_of(*(Eq(field, None) for field in AUDIENCE_FIELDS))


def _student_predicate(identity: StudentIdentity, kind: RecordKind) -> Predicate:
    if kind.is_fact:
        return Eq("student_id", identity.user_id)

    if kind == RecordKind.ANNOUNCEMENT:
        # Each scoping column either matches the student or is left open
        audience = all_of(
            Eq("student_id", None),
            Eq("commission_id", None),
            eq_or_null("grade_level", identity.grades),
            eq_or_null("section", identity.sections),
            eq_or_null("course", identity.courses),
        )
        return any_of(
            Eq("student_id", identity.user_id),
            in_("commission_id", identity.commission_ids),
            institution_wide(),
            audience,
        )

    if kind == RecordKind.TUTORING_ANNOUNCEMENT:
        return any_of(*(
            all_of(_group(tutor.grade_level, tutor.section), Eq("sender_id", tutor.teacher_id))
            for tutor in identity.homeroom_tutors
        ))

    return NEVER


def _teacher_predicate(identity: TeacherIdentity, kind: RecordKind) -> Predicate:
    homerooms = [_group(g.grade_level, g.section) for g in identity.tutoring]

    if kind in (RecordKind.ATTENDANCE, RecordKind.GRADE):
        return any_of(Eq("teacher_id", identity.user_id), *homerooms)

    if kind == RecordKind.COMMISSION_ATTENDANCE:
        return any_of(
            Eq("teacher_id", identity.user_id),
            in_("commission_id", identity.commission_ids),
        )

    if kind == RecordKind.ANNOUNCEMENT:
        return any_of(
            Eq("sender_id", identity.user_id),
            in_("course", identity.courses),
            *homerooms,
            in_("commission_id", identity.commission_ids),
            institution_wide(),
        )

    if kind == RecordKind.TUTORING_ANNOUNCEMENT:
        return any_of(Eq("sender_id", identity.user_id), *homerooms)

    return NEVER


def filter_predicate(kind: RecordKind, filters: Optional[RecordFilters]) -> Predicate:
    """Conjunction of the filters that name a field the kind actually has"""
    if filters is None:
        return ALWAYS
    model = model_for(kind)
    clauses = [
        Eq(field, value)
        for field, value in filters.equality_filters().items()
        if hasattr(model, field)
    ]
    if hasattr(model, "date") and (filters.start_date or filters.end_date):
        clauses.append(Range("date", filters.start_date, filters.end_date))
    return all_of(*clauses)


def resolve_visibility(
    identity: Any,
    kind: Union[RecordKind, str],
    filters: Union[RecordFilters, Mapping[str, Any], None] = None
) -> Predicate:
    """
    Predicate selecting the records of ``kind`` that ``identity`` may read.

    Args:
        identity: resolved identity snapshot
        kind: record kind being listed
        filters: optional narrowing filters; they are conjoined, never widen

    Returns:
        Predicate; ``NEVER`` when the identity's role is not recognised
    """
    kind = _coerce_kind(kind)
    filters = _coerce_filters(filters)
    known = coerce_identity(identity)

    if known is None:
        log_event(logger, "visibility.unknown_role", logging.WARNING, kind=kind.value)
        return NEVER

    if isinstance(known, AdministratorIdentity):
        scope = ALWAYS
    elif isinstance(known, TeacherIdentity):
        scope = _teacher_predicate(known, kind)
    else:
        scope = _student_predicate(known, kind)

    return all_of(
        Eq("institution_id", known.institution_id),
        scope,
        filter_predicate(kind, filters),
    )


def _get(context: Any, name: str) -> Any:
    if isinstance(context, Mapping):
        return context.get(name)
    return getattr(context, name, None)


def _check_institution(identity, context: Any) -> None:
    institution_id = _get(context, "institution_id")
    if institution_id is not None and institution_id != identity.institution_id:
        raise PermissionDenied(
            "Cannot write records for another institution",
            field="institution_id",
            details={"institution_id": institution_id}
        )


def _check_teacher_is_self(identity, context: Any, field: str = "teacher_id") -> None:
    author = _get(context, field)
    if author is not None and author != identity.user_id:
        raise PermissionDenied(
            f"{field} must be the authenticated user",
            field=field,
            details={field: author}
        )


def authorize_write(identity: Any, kind: Union[RecordKind, str], context: Any) -> None:
    """
    Raise PermissionDenied unless ``identity`` may write ``kind`` records for ``context``.

    Raises:
        ValidationError: If the kind is unknown
        PermissionDenied: Naming the field that makes the write illegal
    """
    kind = _coerce_kind(kind)
    known = require_identity(identity)

    if kind in (RecordKind.ATTENDANCE, RecordKind.GRADE):
        if not isinstance(known, TeacherIdentity):
            raise PermissionDenied(f"Only teachers can register {kind.value} records", field="role")
        if _get(context, "teacher_id") is None:
            raise PermissionDenied("teacher_id must be the authenticated user", field="teacher_id")
        _check_teacher_is_self(known, context)
        _check_institution(known, context)
        course = _get(context, "course")
        grade_level = _get(context, "grade_level")
        section = _get(context, "section")
        if course not in known.courses and not known.tutors(grade_level, section):
            raise PermissionDenied(
                f"Teacher does not teach '{course}' nor tutor {grade_level}/{section}",
                field="course",
                details={"course": course, "grade_level": grade_level, "section": section}
            )
        return

    if kind == RecordKind.COMMISSION_ATTENDANCE:
        if not isinstance(known, TeacherIdentity):
            raise PermissionDenied("Only teachers can register commission attendance", field="role")
        _check_teacher_is_self(known, context)
        _check_institution(known, context)
        commission_id = _get(context, "commission_id")
        if commission_id not in known.commission_ids:
            raise PermissionDenied(
                "Teacher is not a member of the commission",
                field="commission_id",
                details={"commission_id": commission_id}
            )
        return

    if kind == RecordKind.ANNOUNCEMENT:
        if not isinstance(known, (TeacherIdentity, AdministratorIdentity)):
            raise PermissionDenied("Only teachers and administrators can post announcements", field="role")
        _check_teacher_is_self(known, context, field="sender_id")
        _check_institution(known, context)
        return

    if kind == RecordKind.TUTORING_ANNOUNCEMENT:
        if not isinstance(known, TeacherIdentity):
            raise PermissionDenied("Only teachers can post tutoring announcements", field="role")
        _check_teacher_is_self(known, context, field="sender_id")
        _check_institution(known, context)
        grade_level = _get(context, "grade_level")
        section = _get(context, "section")
        if not known.tutors(grade_level, section):
            raise PermissionDenied(
                f"Teacher does not tutor {grade_level}/{section}",
                field="grade_level",
                details={"grade_level": grade_level, "section": section}
            )
        return

    raise PermissionDenied(f"Records of kind {kind.value} cannot be written", field="kind")
