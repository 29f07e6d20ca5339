# tests/conftest.py

from datetime import date
from types import SimpleNamespace

import pytest
from sqlalchemy.pool import StaticPool

from academic_records.core.database import build_engine, build_session_factory, init_db
from academic_records.core.enums import UserRole
from academic_records.models import (
    Commission,
    CommissionMembership,
    Institution,
    TutoringAssignment,
    User,
)
from academic_records.services import IdentityService

SCHOOL_DAY = date(2024, 3, 4)


def make_user(institution, code, role, **fields):
    return User(
        institution=institution,
        code=code,
        role=role,
        name=fields.pop("name", code.title()),
        last_name=fields.pop("last_name", "Test"),
        phone=fields.pop("phone", ""),
        grades=fields.pop("grades", []),
        sections=fields.pop("sections", []),
        courses=fields.pop("courses", []),
        **fields,
    )


@pytest.fixture
async def engine():
    engine = build_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session(engine):
    factory = build_session_factory(engine)
    async with factory() as session:
        yield session


@pytest.fixture
async def school(session):
    """
    Two institutions. In the first one:
    math_teacher teaches Math and belongs to the robotics commission,
    tutor and co_tutor both tutor 5/A, s1/s2 are in 5/A, s3 is in 5/B.
    Only ids are handed out: a rollback expires every loaded instance.
    """
    north = Institution(name="Colegio Norte")
    south = Institution(name="Colegio Sur")

    admin = make_user(north, "ADM-1", UserRole.ADMINISTRATOR)
    math_teacher = make_user(north, "T-MATH", UserRole.TEACHER, courses=["Math"])
    tutor = make_user(north, "T-TUTOR", UserRole.TEACHER, courses=["History"])
    co_tutor = make_user(north, "T-COTUTOR", UserRole.TEACHER)
    s1 = make_user(north, "S-1", UserRole.STUDENT, grades=["5"], sections=["A"], courses=["Math"])
    s2 = make_user(north, "S-2", UserRole.STUDENT, grades=["5"], sections=["A"], courses=["Math"])
    s3 = make_user(north, "S-3", UserRole.STUDENT, grades=["5"], sections=["B"], courses=["Math"])

    south_admin = make_user(south, "ADM-2", UserRole.ADMINISTRATOR)
    south_teacher = make_user(south, "T-SOUTH", UserRole.TEACHER, courses=["Math"])
    south_student = make_user(south, "S-SOUTH", UserRole.STUDENT, grades=["5"], sections=["A"])

    robotics = Commission(institution=north, name="Robotica", description="Club de robotica")

    session.add_all([
        north, south, admin, math_teacher, tutor, co_tutor, s1, s2, s3,
        south_admin, south_teacher, south_student, robotics,
    ])
    await session.flush()

    session.add_all([
        TutoringAssignment(institution_id=north.id, teacher_id=tutor.id, grade_level="5", section="A"),
        TutoringAssignment(institution_id=north.id, teacher_id=co_tutor.id, grade_level="5", section="A"),
        CommissionMembership(commission_id=robotics.id, user_id=math_teacher.id),
        CommissionMembership(commission_id=robotics.id, user_id=s1.id),
    ])
    await session.commit()

    return SimpleNamespace(**{
        name: obj.id for name, obj in {
            "north": north,
            "south": south,
            "admin": admin,
            "math_teacher": math_teacher,
            "tutor": tutor,
            "co_tutor": co_tutor,
            "s1": s1,
            "s2": s2,
            "s3": s3,
            "south_admin": south_admin,
            "south_teacher": south_teacher,
            "south_student": south_student,
            "robotics": robotics,
        }.items()
    })


@pytest.fixture
async def identities(session, school):
    """Resolve an identity snapshot by fixture user name, e.g. ``await identities("s1")``"""
    service = IdentityService(session)

    async def resolve(name):
        return await service.resolve_identity(getattr(school, name))

    return resolve


@pytest.fixture
async def math_context(school):
    return {
        "teacher_id": school.math_teacher,
        "institution_id": school.north,
        "course": "Math",
        "grade_level": "5",
        "section": "A",
        "date": SCHOOL_DAY,
    }
