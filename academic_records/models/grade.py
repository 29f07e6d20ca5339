from sqlalchemy import Column, Index, String, Text, UniqueConstraint

from academic_records.core.enums import ExamType
from academic_records.core.natural_keys import GRADE_KEY
from .base import value_enum
from .fact_base import FactRecordBase


class Grade(FactRecordBase):
    __tablename__ = "grades"
    __table_args__ = (
        UniqueConstraint(*GRADE_KEY.fields, name=GRADE_KEY.constraint_name),
        Index("ix_grades_group", "institution_id", "grade_level", "section"),
    )

    course = Column(String(120), nullable=False)
    grade_level = Column(String(32), nullable=False)
    section = Column(String(32), nullable=False)
    score = Column(String(64), nullable=False)  # free-form: "18", "A", "AD"
    comment = Column(Text, nullable=False, default="")
    exam_type = Column(value_enum(ExamType), nullable=False, default=ExamType.QUIZ)

    def __repr__(self):
        return f"<Grade(id={self.id}, student_id={self.student_id}, score={self.score})>"
