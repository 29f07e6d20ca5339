from sqlalchemy import Column, ForeignKey, Index, Integer, String, Text

from .base import TenantModel


class Announcement(TenantModel):
    """
    Broadcast message. Every scoping column left null widens the audience;
    all of them null means institution-wide.
    """
    __tablename__ = "announcements"

    subject = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    grade_level = Column(String(32), nullable=True)
    section = Column(String(32), nullable=True)
    course = Column(String(120), nullable=True)
    student_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    commission_id = Column(Integer, ForeignKey("commissions.id", ondelete="CASCADE"), nullable=True)

    def __repr__(self):
        return f"<Announcement(id={self.id}, subject={self.subject})>"


class TutoringAnnouncement(TenantModel):
    __tablename__ = "tutoring_announcements"
    __table_args__ = (
        Index("ix_tutoring_announcements_group", "institution_id", "grade_level", "section", "sender_id"),
    )

    subject = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    grade_level = Column(String(32), nullable=False)
    section = Column(String(32), nullable=False)

    def __repr__(self):
        return f"<TutoringAnnouncement(id={self.id}, grade_level={self.grade_level}, section={self.section})>"
