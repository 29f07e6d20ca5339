import pytest

from academic_records.core.enums import UserRole
from academic_records.core.exceptions import NotFound
from academic_records.models import User
from academic_records.schemas import (
    AdministratorIdentity,
    HomeroomGroup,
    StudentIdentity,
    TeacherIdentity,
)
from academic_records.services import IdentityService


async def test_teacher_identity_carries_courses_commissions_and_tutoring(identities, school):
    math_teacher = await identities("math_teacher")
    tutor = await identities("tutor")

    assert isinstance(math_teacher, TeacherIdentity)
    assert math_teacher.courses == ("Math",)
    assert math_teacher.commission_ids == (school.robotics,)
    assert math_teacher.tutoring == ()

    assert tutor.tutoring == (HomeroomGroup(grade_level="5", section="A"),)
    assert tutor.tutors("5", "A")
    assert not tutor.tutors("5", "B")


async def test_student_identity_lists_every_homeroom_tutor(identities, school):
    s1 = await identities("s1")
    s3 = await identities("s3")

    assert isinstance(s1, StudentIdentity)
    assert s1.commission_ids == (school.robotics,)
    assert {t.teacher_id for t in s1.homeroom_tutors} == {school.tutor, school.co_tutor}
    assert s3.homeroom_tutors == ()


async def test_administrator_identity(identities, school):
    admin = await identities("admin")

    assert isinstance(admin, AdministratorIdentity)
    assert admin.institution_id == school.north


async def test_unknown_user_is_not_found(session, school):
    with pytest.raises(NotFound) as exc:
        await IdentityService(session).resolve_identity(999_999)
    assert exc.value.field == "user_id"


async def test_students_in_group_stays_inside_the_institution(session, school):
    students = await IdentityService(session).students_in_group(school.north, "5", "A")

    assert {s.id for s in students} == {school.s1, school.s2}


async def test_group_membership_matches_whole_list_elements(session, school):
    session.add_all([
        User(institution_id=school.north, code="S-15", role=UserRole.STUDENT, name="Quince", last_name="Test",
             grades=["15"], sections=["A"], courses=[]),
        User(institution_id=school.north, code="S-MULTI", role=UserRole.STUDENT, name="Varios", last_name="Test",
             grades=["4", "5"], sections=["C", "A"], courses=[]),
        User(institution_id=school.north, code="T-5A", role=UserRole.TEACHER, name="Docente", last_name="Test",
             grades=["5"], sections=["A"], courses=["Art"]),
    ])
    await session.commit()

    students = await IdentityService(session).students_in_group(school.north, "5", "A")

    assert sorted(s.code for s in students) == ["S-1", "S-2", "S-MULTI"]


async def test_commission_rosters_split_by_role(session, school):
    service = IdentityService(session)

    assert await service.commission_student_ids(school.robotics) == [school.s1]
    assert await service.commission_teacher_ids(school.robotics) == [school.math_teacher]
