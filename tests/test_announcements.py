import pytest

from academic_records.core.enums import RecordKind
from academic_records.core.exceptions import NotFound, PermissionDenied, ValidationError
from academic_records.services import AnnouncementService, MembershipService, RecordService

ANNOUNCEMENT = RecordKind.ANNOUNCEMENT
TUTORING = RecordKind.TUTORING_ANNOUNCEMENT


async def subjects(session, identity, kind):
    records = await RecordService(session).list_records(identity, kind)
    return sorted(record.subject for record in records)


async def test_announcements_reach_their_audience(session, school, identities):
    service = AnnouncementService(session)
    teacher = await identities("math_teacher")

    await service.post_announcement(teacher, {"subject": "Feriado", "message": "No hay clases"})
    await service.post_announcement(teacher, {"subject": "Examen 5A", "message": "Viernes", "grade_level": "5",
                                              "section": "A", "course": "Math"})
    await service.post_announcement(teacher, {"subject": "Para S2", "message": "Hola", "student_id": school.s2})
    await service.post_announcement(teacher, {"subject": "Robotica", "message": "Lunes",
                                              "commission_id": school.robotics})
    await service.post_announcement(await identities("admin"), {"subject": "Solo 5B", "message": "Patio",
                                                               "grade_level": "5", "section": "B"})

    assert await subjects(session, await identities("s1"), ANNOUNCEMENT) == ["Examen 5A", "Feriado", "Robotica"]
    assert await subjects(session, await identities("s2"), ANNOUNCEMENT) == ["Examen 5A", "Feriado", "Para S2"]
    assert await subjects(session, await identities("s3"), ANNOUNCEMENT) == ["Feriado", "Solo 5B"]
    assert await subjects(session, await identities("south_student"), ANNOUNCEMENT) == []
    assert len(await subjects(session, await identities("admin"), ANNOUNCEMENT)) == 5


async def test_students_cannot_post_announcements(session, school, identities):
    with pytest.raises(PermissionDenied) as exc:
        await AnnouncementService(session).post_announcement(
            await identities("s1"), {"subject": "Hola", "message": "Todos"}
        )
    assert exc.value.field == "role"


async def test_announcement_audience_must_exist_in_the_institution(session, school, identities):
    service = AnnouncementService(session)
    teacher = await identities("math_teacher")

    with pytest.raises(NotFound) as exc:
        await service.post_announcement(teacher, {"subject": "x", "message": "y", "student_id": school.south_student})
    assert exc.value.field == "student_id"

    with pytest.raises(ValidationError) as exc:
        await service.post_announcement(teacher, {"subject": " ", "message": "y"})
    assert exc.value.field == "subject"


async def test_tutoring_announcement_requires_an_assignment(session, school, identities):
    with pytest.raises(PermissionDenied):
        await AnnouncementService(session).post_tutoring_announcement(
            await identities("math_teacher"), {"subject": "Tutoria", "message": "Hola", "grade_level": "5",
                                               "section": "A"}
        )
    assert await subjects(session, await identities("admin"), TUTORING) == []


async def test_tutoring_announcements_reach_the_homeroom_only(session, school, identities):
    service = AnnouncementService(session)
    await service.post_tutoring_announcement(
        await identities("tutor"), {"subject": "Tutoria 5A", "message": "Reunion", "grade_level": "5", "section": "A"}
    )
    await service.post_tutoring_announcement(
        await identities("co_tutor"), {"subject": "Co-tutoria 5A", "message": "Notas", "grade_level": "5",
                                       "section": "A"}
    )

    assert await subjects(session, await identities("s1"), TUTORING) == ["Co-tutoria 5A", "Tutoria 5A"]
    assert await subjects(session, await identities("s3"), TUTORING) == []
    assert await subjects(session, await identities("co_tutor"), TUTORING) == ["Co-tutoria 5A", "Tutoria 5A"]
    assert await subjects(session, await identities("math_teacher"), TUTORING) == []


async def test_revoked_assignment_is_caught_even_with_a_stale_identity(session, school, identities):
    tutor = await identities("tutor")
    admin = await identities("admin")
    membership = MembershipService(session)
    assignment = next(
        a for a in await membership.list_tutoring_assignments(admin) if a.teacher_id == school.tutor
    )
    await membership.delete_tutoring_assignment(admin, assignment.id)

    with pytest.raises(PermissionDenied) as exc:
        await AnnouncementService(session).post_tutoring_announcement(
            tutor, {"subject": "Tarde", "message": "Ya no", "grade_level": "5", "section": "A"}
        )
    assert exc.value.field == "grade_level"


async def test_announcements_from_a_removed_tutor_disappear_for_students(session, school, identities):
    admin = await identities("admin")
    membership = MembershipService(session)
    await AnnouncementService(session).post_tutoring_announcement(
        await identities("tutor"), {"subject": "Antigua", "message": "x", "grade_level": "5", "section": "A"}
    )
    assignment = next(
        a for a in await membership.list_tutoring_assignments(admin) if a.teacher_id == school.tutor
    )
    await membership.delete_tutoring_assignment(admin, assignment.id)

    assert await subjects(session, await identities("s1"), TUTORING) == []
    assert await subjects(session, await identities("tutor"), TUTORING) == ["Antigua"]


async def test_mapping_identities_post_as_themselves(session, school, identities):
    service = AnnouncementService(session)
    teacher = (await identities("math_teacher")).model_dump(mode="json")
    tutor = (await identities("tutor")).model_dump(mode="json")

    posted = await service.post_announcement(teacher, {"subject": "Desde dict", "message": "Hola"})
    homeroom = await service.post_tutoring_announcement(
        tutor, {"subject": "Tutoria dict", "message": "Hola", "grade_level": "5", "section": "A"}
    )

    assert (posted.sender_id, posted.institution_id) == (school.math_teacher, school.north)
    assert homeroom.sender_id == school.tutor
    assert await subjects(session, teacher, ANNOUNCEMENT) == ["Desde dict"]

    with pytest.raises(PermissionDenied) as exc:
        await service.post_announcement({"role": "parent", "user_id": 1}, {"subject": "x", "message": "y"})
    assert exc.value.field == "role"
