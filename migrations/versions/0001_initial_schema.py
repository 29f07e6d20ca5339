"""initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18 09:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

USER_ROLES = ("teacher", "student", "administrator")
ATTENDANCE_STATUSES = ("Presente", "Tardanza", "Falta")
COMMISSION_ATTENDANCE_STATUSES = ("Presente", "Ausente", "Tardanza", "Justificado")
EXAM_TYPES = (
    "Examen Parcial", "Examen Final", "Prueba Corta",
    "Trabajo Práctico", "Participación", "Otro",
)


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
    ]


def _institution():
    return sa.Column(
        "institution_id", sa.Integer(),
        sa.ForeignKey("institutions.id", ondelete="CASCADE"), nullable=False,
    )


def _fact_columns():
    return [
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("teacher_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("date", sa.DateTime(), nullable=False),
    ]


def _index_columns(table: str, *columns: str) -> None:
    for column in columns:
        op.create_index(f"ix_{table}_{column}", table, [column])


def upgrade() -> None:
    op.create_table(
        "institutions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        *_timestamps(),
    )
    _index_columns("institutions", "id")

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sa.String(64), nullable=False, unique=True),
        sa.Column("role", sa.Enum(*USER_ROLES, name="userrole", native_enum=False), nullable=False),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("last_name", sa.String(120), nullable=False),
        sa.Column("phone", sa.String(32), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("grades", sa.JSON(), nullable=False),
        sa.Column("sections", sa.JSON(), nullable=False),
        sa.Column("courses", sa.JSON(), nullable=False),
        _institution(),
        *_timestamps(),
    )
    _index_columns("users", "id", "role", "institution_id")

    op.create_table(
        "commissions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        _institution(),
        *_timestamps(),
        sa.UniqueConstraint("name", "institution_id", name="uq_commission_name"),
    )
    _index_columns("commissions", "id", "institution_id")

    op.create_table(
        "commission_memberships",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "commission_id", sa.Integer(),
            sa.ForeignKey("commissions.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("commission_id", "user_id", name="uq_commission_membership"),
    )
    _index_columns("commission_memberships", "id", "commission_id", "user_id")

    op.create_table(
        "tutoring_assignments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("teacher_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("grade_level", sa.String(32), nullable=False),
        sa.Column("section", sa.String(32), nullable=False),
        _institution(),
        *_timestamps(),
        sa.UniqueConstraint(
            "teacher_id", "institution_id", "grade_level", "section",
            name="uq_tutoring_assignment",
        ),
    )
    _index_columns("tutoring_assignments", "id", "teacher_id", "institution_id")

    op.create_table(
        "attendances",
        sa.Column("id", sa.Integer(), primary_key=True),
        *_fact_columns(),
        sa.Column("course", sa.String(120), nullable=False),
        sa.Column("grade_level", sa.String(32), nullable=False),
        sa.Column("section", sa.String(32), nullable=False),
        sa.Column(
            "status",
            sa.Enum(*ATTENDANCE_STATUSES, name="attendancestatus", native_enum=False),
            nullable=False,
        ),
        _institution(),
        *_timestamps(),
        sa.UniqueConstraint(
            "student_id", "course", "date", "institution_id", "grade_level", "section",
            name="uq_attendance_natural_key",
        ),
    )
    _index_columns("attendances", "id", "student_id", "teacher_id", "date", "institution_id")
    op.create_index("ix_attendances_group", "attendances", ["institution_id", "grade_level", "section"])

    op.create_table(
        "grades",
        sa.Column("id", sa.Integer(), primary_key=True),
        *_fact_columns(),
        sa.Column("course", sa.String(120), nullable=False),
        sa.Column("grade_level", sa.String(32), nullable=False),
        sa.Column("section", sa.String(32), nullable=False),
        sa.Column("score", sa.String(64), nullable=False),
        sa.Column("comment", sa.Text(), nullable=False),
        sa.Column("exam_type", sa.Enum(*EXAM_TYPES, name="examtype", native_enum=False), nullable=False),
        _institution(),
        *_timestamps(),
        sa.UniqueConstraint(
            "student_id", "course", "date", "institution_id", "grade_level", "section", "exam_type",
            name="uq_grade_natural_key",
        ),
    )
    _index_columns("grades", "id", "student_id", "teacher_id", "date", "institution_id")
    op.create_index("ix_grades_group", "grades", ["institution_id", "grade_level", "section"])

    op.create_table(
        "commission_attendances",
        sa.Column("id", sa.Integer(), primary_key=True),
        *_fact_columns(),
        sa.Column("commission_id", sa.Integer(), sa.ForeignKey("commissions.id"), nullable=False),
        sa.Column(
            "status",
            sa.Enum(*COMMISSION_ATTENDANCE_STATUSES, name="commissionattendancestatus", native_enum=False),
            nullable=False,
        ),
        _institution(),
        *_timestamps(),
        sa.UniqueConstraint(
            "student_id", "commission_id", "date", "institution_id",
            name="uq_commission_attendance_natural_key",
        ),
    )
    _index_columns(
        "commission_attendances", "id", "student_id", "teacher_id", "date", "institution_id", "commission_id"
    )

    op.create_table(
        "announcements",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("subject", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("sender_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("grade_level", sa.String(32), nullable=True),
        sa.Column("section", sa.String(32), nullable=True),
        sa.Column("course", sa.String(120), nullable=True),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=True),
        sa.Column(
            "commission_id", sa.Integer(),
            sa.ForeignKey("commissions.id", ondelete="CASCADE"), nullable=True,
        ),
        _institution(),
        *_timestamps(),
    )
    _index_columns("announcements", "id", "sender_id", "institution_id")

    op.create_table(
        "tutoring_announcements",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("subject", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("sender_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("grade_level", sa.String(32), nullable=False),
        sa.Column("section", sa.String(32), nullable=False),
        _institution(),
        *_timestamps(),
    )
    _index_columns("tutoring_announcements", "id", "institution_id")
    op.create_index(
        "ix_tutoring_announcements_group",
        "tutoring_announcements",
        ["institution_id", "grade_level", "section", "sender_id"],
    )


def downgrade() -> None:
    for table in (
        "tutoring_announcements",
        "announcements",
        "commission_attendances",
        "grades",
        "attendances",
        "tutoring_assignments",
        "commission_memberships",
        "commissions",
        "users",
        "institutions",
    ):
        op.drop_table(table)
