from sqlalchemy import Column, ForeignKey, Index, Integer, String, UniqueConstraint

from academic_records.core.enums import AttendanceStatus, CommissionAttendanceStatus
from academic_records.core.natural_keys import ATTENDANCE_KEY, COMMISSION_ATTENDANCE_KEY
from .base import value_enum
from .fact_base import FactRecordBase


class Attendance(FactRecordBase):
    __tablename__ = "attendances"
    __table_args__ = (
        UniqueConstraint(*ATTENDANCE_KEY.fields, name=ATTENDANCE_KEY.constraint_name),
        Index("ix_attendances_group", "institution_id", "grade_level", "section"),
    )

    course = Column(String(120), nullable=False)
    grade_level = Column(String(32), nullable=False)
    section = Column(String(32), nullable=False)
    status = Column(value_enum(AttendanceStatus), nullable=False)

    def __repr__(self):
        return f"<Attendance(id={self.id}, student_id={self.student_id}, status={self.status})>"


class CommissionAttendance(FactRecordBase):
    __tablename__ = "commission_attendances"
    __table_args__ = (
        UniqueConstraint(*COMMISSION_ATTENDANCE_KEY.fields, name=COMMISSION_ATTENDANCE_KEY.constraint_name),
    )

    commission_id = Column(Integer, ForeignKey("commissions.id"), nullable=False, index=True)
    status = Column(value_enum(CommissionAttendanceStatus), nullable=False)

    def __repr__(self):
        return f"<CommissionAttendance(id={self.id}, commission_id={self.commission_id}, status={self.status})>"
