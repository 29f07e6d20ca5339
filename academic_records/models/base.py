# base.py
from enum import Enum as PyEnum
from typing import Type

from sqlalchemy import Enum

from academic_records.core.database import Base, TenantModel, TimestampMixin


def value_enum(enum_cls: Type[PyEnum]) -> Enum:
    """Store a str enum by its value rather than its member name"""
    return Enum(
        enum_cls,
        values_callable=lambda members: [member.value for member in members],
        native_enum=False,
        validate_strings=True,
        name=enum_cls.__name__.lower(),
    )


__all__ = ["Base", "TenantModel", "TimestampMixin", "value_enum"]
