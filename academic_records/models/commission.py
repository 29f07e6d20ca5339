from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Text, UniqueConstraint

from .base import Base, TenantModel, TimestampMixin


class Commission(TenantModel):
    """
    Named group of teachers and students, orthogonal to grade/section.
    Rosters are not stored here; they are derived from CommissionMembership.
    """
    __tablename__ = "commissions"
    __table_args__ = (
        UniqueConstraint("name", "institution_id", name="uq_commission_name"),
    )

    name = Column(String(120), nullable=False)
    description = Column(Text, nullable=False, default="")
    is_active = Column(Boolean, nullable=False, default=True)

    def __repr__(self):
        return f"<Commission(id={self.id}, name={self.name}, institution_id={self.institution_id})>"


class CommissionMembership(TimestampMixin, Base):
    """
    The one relationship row between a commission and a user. Both the user's
    commission list and the commission's teacher/student rosters read from here.
    """
    __tablename__ = "commission_memberships"
    __table_args__ = (
        UniqueConstraint("commission_id", "user_id", name="uq_commission_membership"),
    )

    commission_id = Column(
        Integer, ForeignKey("commissions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    def __repr__(self):
        return f"<CommissionMembership(commission_id={self.commission_id}, user_id={self.user_id})>"
