from types import SimpleNamespace

import pytest

from academic_records.core.enums import ExamType, RecordKind
from academic_records.core.exceptions import NotFound, PermissionDenied
from academic_records.core.predicates import NEVER
from academic_records.schemas import (
    AdministratorIdentity,
    HomeroomGroup,
    HomeroomTutor,
    StudentIdentity,
    TeacherIdentity,
)
from academic_records.services import RecordService, RegistrationService
from academic_records.services.visibility import authorize_write, resolve_visibility

GRADE = RecordKind.GRADE
ATTENDANCE = RecordKind.ATTENDANCE


def announcement(**fields):
    base = dict(
        institution_id=1, sender_id=90, grade_level=None, section=None,
        course=None, student_id=None, commission_id=None,
    )
    base.update(fields)
    return SimpleNamespace(**base)


STUDENT = StudentIdentity(
    user_id=10, institution_id=1, grades=("5",), sections=("A",), courses=("Math",),
    commission_ids=(3,), homeroom_tutors=(HomeroomTutor(grade_level="5", section="A", teacher_id=20),),
)
TEACHER = TeacherIdentity(
    user_id=20, institution_id=1, courses=("History",), commission_ids=(3,),
    tutoring=(HomeroomGroup(grade_level="5", section="A"),),
)


@pytest.fixture
async def graded(session, school, math_context):
    service = RegistrationService(session)
    await service.register({**math_context, "exam_type": ExamType.QUIZ}, [
        {"student_id": school.s1, "score": "18"},
        {"student_id": school.s2, "score": "12"},
    ], kind=GRADE)
    await service.register({**math_context, "date": "2024-03-05"}, [
        {"student_id": school.s1, "status": "Presente"},
        {"student_id": school.s2, "status": "Falta"},
    ], kind=ATTENDANCE)
    await service.register({
        "teacher_id": school.south_teacher, "institution_id": school.south, "course": "Math",
        "grade_level": "5", "section": "A", "date": "2024-03-05",
    }, [{"student_id": school.south_student, "status": "Presente"}], kind=ATTENDANCE)
    return school


async def list_ids(session, identity, kind, filters=None):
    records = await RecordService(session).list_records(identity, kind, filters)
    return sorted(record.student_id for record in records)


async def test_student_sees_only_their_own_grades(session, graded, identities):
    assert await list_ids(session, await identities("s1"), GRADE) == [graded.s1]
    assert await list_ids(session, await identities("s3"), GRADE) == []


async def test_homeroom_tutors_see_grades_written_by_other_teachers(session, graded, identities):
    both = sorted([graded.s1, graded.s2])

    assert await list_ids(session, await identities("tutor"), GRADE) == both
    assert await list_ids(session, await identities("co_tutor"), GRADE) == both
    assert await list_ids(session, await identities("math_teacher"), GRADE) == both


async def test_records_never_cross_institutions(session, graded, identities):
    north = await list_ids(session, await identities("admin"), ATTENDANCE)
    south = await list_ids(session, await identities("south_admin"), ATTENDANCE)

    assert north == sorted([graded.s1, graded.s2])
    assert south == [graded.south_student]
    assert await list_ids(session, await identities("south_teacher"), GRADE) == []


async def test_unknown_role_sees_nothing(session, graded):
    stranger = {"role": "parent", "user_id": graded.s1, "institution_id": graded.north}

    assert resolve_visibility(stranger, GRADE) is NEVER
    assert await RecordService(session).list_records(stranger, GRADE) == []


async def test_explicit_filters_only_narrow(session, graded, identities):
    s1 = await identities("s1")
    admin = await identities("admin")

    assert await list_ids(session, s1, GRADE, {"student_id": graded.s2}) == []
    assert await list_ids(session, admin, ATTENDANCE, {"institution_id": graded.south}) == []
    assert await list_ids(session, admin, GRADE, {"course": "Art"}) == []
    assert await list_ids(session, admin, GRADE, {"exam_type": "Prueba Corta", "section": ""}) == sorted(
        [graded.s1, graded.s2]
    )


async def test_date_range_filter_covers_whole_days(session, graded, identities):
    admin = await identities("admin")

    same_day = {"start_date": "2024-03-05T12:00:00", "end_date": "2024-03-05"}
    assert await list_ids(session, admin, ATTENDANCE, same_day) == sorted([graded.s1, graded.s2])
    assert await list_ids(session, admin, GRADE, same_day) == []


async def test_filters_on_fields_a_kind_lacks_are_ignored(session, graded, identities):
    admin = await identities("admin")

    assert await list_ids(session, admin, ATTENDANCE, {"exam_type": "Examen Final", "sender_id": 1}) == sorted(
        [graded.s1, graded.s2]
    )


async def test_fact_records_come_newest_day_first(session, graded, identities):
    records = await RecordService(session).list_records(await identities("s1"), ATTENDANCE)
    assert [r.student_id for r in records] == [graded.s1]

    admin = await identities("admin")
    newest = await RecordService(session).list_records(admin, GRADE, limit=1)
    assert len(newest) == 1


def test_student_announcement_audience():
    predicate = resolve_visibility(STUDENT, RecordKind.ANNOUNCEMENT)

    assert predicate.matches(announcement())
    assert predicate.matches(announcement(grade_level="5"))
    assert predicate.matches(announcement(grade_level="5", section="A", course="Math"))
    assert predicate.matches(announcement(student_id=10))
    assert predicate.matches(announcement(commission_id=3))

    assert not predicate.matches(announcement(grade_level="5", section="B"))
    assert not predicate.matches(announcement(course="Art"))
    assert not predicate.matches(announcement(student_id=11))
    assert not predicate.matches(announcement(commission_id=4))
    assert not predicate.matches(announcement(institution_id=2))


def test_teacher_announcement_audience():
    predicate = resolve_visibility(TEACHER, RecordKind.ANNOUNCEMENT)

    assert predicate.matches(announcement(sender_id=20, student_id=99))
    assert predicate.matches(announcement(course="History"))
    assert predicate.matches(announcement(grade_level="5", section="A"))
    assert predicate.matches(announcement(commission_id=3))
    assert predicate.matches(announcement())
    assert not predicate.matches(announcement(course="Math"))
    assert not predicate.matches(announcement(grade_level="6", section="A"))


def test_tutoring_announcements_follow_current_tutors():
    student_view = resolve_visibility(STUDENT, RecordKind.TUTORING_ANNOUNCEMENT)

    assert student_view.matches(announcement(grade_level="5", section="A", sender_id=20))
    assert not student_view.matches(announcement(grade_level="5", section="A", sender_id=21))

    orphan = STUDENT.model_copy(update={"homeroom_tutors": ()})
    assert resolve_visibility(orphan, RecordKind.TUTORING_ANNOUNCEMENT) is NEVER


def test_administrator_scope_is_the_institution():
    admin = AdministratorIdentity(user_id=1, institution_id=1)
    predicate = resolve_visibility(admin, RecordKind.COMMISSION_ATTENDANCE)

    assert predicate.matches(SimpleNamespace(institution_id=1, student_id=5))
    assert not predicate.matches(SimpleNamespace(institution_id=2, student_id=5))


@pytest.mark.parametrize("identity,kind,context,field", [
    (STUDENT, RecordKind.ANNOUNCEMENT, {}, "role"),
    (TEACHER, RecordKind.COMMISSION_ATTENDANCE, {"teacher_id": 20, "institution_id": 1, "commission_id": 4},
     "commission_id"),
    (TEACHER, RecordKind.ATTENDANCE, {"teacher_id": 20, "institution_id": 2, "course": "History",
                                      "grade_level": "5", "section": "A"}, "institution_id"),
    (TEACHER, RecordKind.TUTORING_ANNOUNCEMENT, {"grade_level": "5", "section": "B"}, "grade_level"),
    (AdministratorIdentity(user_id=1, institution_id=1), RecordKind.GRADE, {"teacher_id": 1}, "role"),
    ({"role": "parent"}, RecordKind.GRADE, {}, "role"),
])
def test_authorize_write_names_the_violated_field(identity, kind, context, field):
    with pytest.raises(PermissionDenied) as exc:
        authorize_write(identity, kind, context)
    assert exc.value.field == field


def test_authorized_writes_are_readable_by_the_writer():
    context = {"teacher_id": 20, "institution_id": 1, "course": "Math", "grade_level": "5", "section": "A"}
    authorize_write(TEACHER, GRADE, context)

    written = SimpleNamespace(student_id=10, **context)
    assert resolve_visibility(TEACHER, GRADE).matches(written)

    authorize_write(TEACHER, RecordKind.COMMISSION_ATTENDANCE, {"teacher_id": 20, "institution_id": 1, "commission_id": 3})


async def test_invisible_record_reads_as_missing(session, graded, identities):
    service = RecordService(session)
    admin = await identities("admin")
    s2_grade = next(r for r in await service.list_records(admin, GRADE) if r.student_id == graded.s2)

    assert (await service.get_record(await identities("s2"), GRADE, s2_grade.id)).id == s2_grade.id
    assert (await service.get_record(await identities("tutor"), "grade", s2_grade.id)).score == "12"

    with pytest.raises(NotFound) as exc:
        await service.get_record(await identities("s1"), GRADE, s2_grade.id)
    assert exc.value.field == "record_id"

    with pytest.raises(NotFound):
        await service.get_record(await identities("south_admin"), GRADE, s2_grade.id)
