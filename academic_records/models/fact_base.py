from sqlalchemy import Column, DateTime, ForeignKey, Integer
from sqlalchemy.orm import declared_attr

from .base import TenantModel


class FactRecordBase(TenantModel):
    """
    One measurement for one student on one day. ``date`` always holds a naive
    datetime truncated to midnight.
    """
    __abstract__ = True

    @declared_attr
    def student_id(cls):
        return Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    @declared_attr
    def teacher_id(cls):
        return Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    @declared_attr
    def date(cls):
        return Column(DateTime, nullable=False, index=True)
