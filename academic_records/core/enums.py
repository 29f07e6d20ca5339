from enum import Enum


class UserRole(str, Enum):
    TEACHER = "teacher"
    STUDENT = "student"
    ADMINISTRATOR = "administrator"


class RecordKind(str, Enum):
    ATTENDANCE = "attendance"
    GRADE = "grade"
    ANNOUNCEMENT = "announcement"
    TUTORING_ANNOUNCEMENT = "tutoring_announcement"
    COMMISSION_ATTENDANCE = "commission_attendance"

    @property
    def is_fact(self) -> bool:
        return self in FACT_KINDS


FACT_KINDS = frozenset({
    RecordKind.ATTENDANCE,
    RecordKind.GRADE,
    RecordKind.COMMISSION_ATTENDANCE,
})


class AttendanceStatus(str, Enum):
    PRESENT = "Presente"
    LATE = "Tardanza"
    ABSENT = "Falta"


class CommissionAttendanceStatus(str, Enum):
    PRESENT = "Presente"
    ABSENT = "Ausente"
    LATE = "Tardanza"
    EXCUSED = "Justificado"


class ExamType(str, Enum):
    MIDTERM = "Examen Parcial"
    FINAL = "Examen Final"
    QUIZ = "Prueba Corta"
    PRACTICAL = "Trabajo Práctico"
    PARTICIPATION = "Participación"
    OTHER = "Otro"


class MembershipAction(str, Enum):
    ADD = "add"
    REMOVE = "remove"
