from sqlalchemy import Column, JSON, String

from academic_records.core.enums import UserRole
from .base import TenantModel, value_enum


class User(TenantModel):
    __tablename__ = "users"

    code = Column(String(64), unique=True, nullable=False)  # login key, unique across tenants
    role = Column(value_enum(UserRole), nullable=False, index=True)
    name = Column(String(120), nullable=False)
    last_name = Column(String(120), nullable=False)
    phone = Column(String(32), nullable=False, default="")
    email = Column(String(255), nullable=True)

    # Students: grade/section/course memberships. Teachers: taught courses.
    grades = Column(JSON, nullable=False, default=list)
    sections = Column(JSON, nullable=False, default=list)
    courses = Column(JSON, nullable=False, default=list)

    def __repr__(self):
        return f"<User(id={self.id}, code={self.code}, role={self.role})>"
