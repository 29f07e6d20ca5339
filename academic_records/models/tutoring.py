from sqlalchemy import Column, ForeignKey, Integer, String, UniqueConstraint

from .base import TenantModel


class TutoringAssignment(TenantModel):
    """
    Binds one teacher to one (grade_level, section) homeroom. Uniqueness covers the
    whole tuple, so two different teachers may tutor the same group.
    """
    __tablename__ = "tutoring_assignments"
    __table_args__ = (
        UniqueConstraint(
            "teacher_id", "institution_id", "grade_level", "section",
            name="uq_tutoring_assignment",
        ),
    )

    teacher_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    grade_level = Column(String(32), nullable=False)
    section = Column(String(32), nullable=False)

    def __repr__(self):
        return (
            f"<TutoringAssignment(teacher_id={self.teacher_id}, "
            f"grade_level={self.grade_level}, section={self.section})>"
        )
