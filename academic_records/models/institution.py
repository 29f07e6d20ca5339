from sqlalchemy import Column, String

from .base import Base, TimestampMixin


class Institution(TimestampMixin, Base):
    """
    Tenant root. Every other row in the store belongs to exactly one institution.
    """
    __tablename__ = "institutions"

    name = Column(String(255), nullable=False, unique=True)

    def __repr__(self):
        return f"<Institution(id={self.id}, name={self.name})>"
