"""Composable visibility predicates.

A predicate is declared once and can be used two ways: compiled into a
SQLAlchemy ``WHERE`` clause for a mapped model, or evaluated directly against
an object carrying the same attribute names. Both paths must agree.
"""
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Tuple

from sqlalchemy import and_, false, or_, true
from sqlalchemy.sql.elements import ColumnElement


class Predicate:
    """Base class for the predicate algebra"""

    def compile(self, model) -> ColumnElement:
        raise NotImplementedError

    def matches(self, obj: Any) -> bool:
        raise NotImplementedError

    def __and__(self, other: "Predicate") -> "Predicate":
        return all_of(self, other)

    def __or__(self, other: "Predicate") -> "Predicate":
        return any_of(self, other)


class _Always(Predicate):
    def compile(self, model) -> ColumnElement:
        return true()

    def matches(self, obj: Any) -> bool:
        return True

    def __repr__(self) -> str:
        return "ALWAYS"


class _Never(Predicate):
    def compile(self, model) -> ColumnElement:
        return false()

    def matches(self, obj: Any) -> bool:
        return False

    def __repr__(self) -> str:
        return "NEVER"


ALWAYS = _Always()
NEVER = _Never()


def _column(model, field: str):
    try:
        return getattr(model, field)
    except AttributeError:
        raise AttributeError(f"{model.__name__} has no field '{field}'") from None


@dataclass(frozen=True)
class Eq(Predicate):
    """``field == value``; a ``None`` value means the field must be null"""
    field: str
    value: Any

    def compile(self, model) -> ColumnElement:
        column = _column(model, self.field)
        if self.value is None:
            return column.is_(None)
        return column == self.value

    def matches(self, obj: Any) -> bool:
        return getattr(obj, self.field, None) == self.value


@dataclass(frozen=True)
class In(Predicate):
    field: str
    values: Tuple[Any, ...]

    def compile(self, model) -> ColumnElement:
        if not self.values:
            return false()
        return _column(model, self.field).in_(self.values)

    def matches(self, obj: Any) -> bool:
        return getattr(obj, self.field, None) in self.values


@dataclass(frozen=True)
class Range(Predicate):
    """Inclusive range; either bound may be open"""
    field: str
    lower: Optional[Any] = None
    upper: Optional[Any] = None

    def compile(self, model) -> ColumnElement:
        column = _column(model, self.field)
        conditions = []
        if self.lower is not None:
            conditions.append(column >= self.lower)
        if self.upper is not None:
            conditions.append(column <= self.upper)
        if not conditions:
            return true()
        return and_(*conditions)

    def matches(self, obj: Any) -> bool:
        value = getattr(obj, self.field, None)
        if value is None:
            return self.lower is None and self.upper is None
        if self.lower is not None and value < self.lower:
            return False
        if self.upper is not None and value > self.upper:
            return False
        return True


@dataclass(frozen=True)
class AllOf(Predicate):
    clauses: Tuple[Predicate, ...]

    def compile(self, model) -> ColumnElement:
        return and_(*(clause.compile(model) for clause in self.clauses))

    def matches(self, obj: Any) -> bool:
        return all(clause.matches(obj) for clause in self.clauses)


@dataclass(frozen=True)
class AnyOf(Predicate):
    clauses: Tuple[Predicate, ...]

    def compile(self, model) -> ColumnElement:
        return or_(*(clause.compile(model) for clause in self.clauses))

    def matches(self, obj: Any) -> bool:
        return any(clause.matches(obj) for clause in self.clauses)


def in_(field: str, values: Iterable[Any]) -> Predicate:
    values = tuple(dict.fromkeys(values))
    if not values:
        return NEVER
    if len(values) == 1:
        return Eq(field, values[0])
    return In(field, values)


def eq_or_null(field: str, values: Iterable[Any]) -> Predicate:
    """Field matches one of ``values`` or is null (a null field matches everyone)"""
    return any_of(in_(field, values), Eq(field, None))


def all_of(*predicates: Predicate) -> Predicate:
    clauses = []
    for predicate in predicates:
        if predicate is NEVER:
            return NEVER
        if predicate is ALWAYS:
            continue
        if isinstance(predicate, AllOf):
            clauses.extend(predicate.clauses)
        else:
            clauses.append(predicate)
    if not clauses:
        return ALWAYS
    if len(clauses) == 1:
        return clauses[0]
    return AllOf(tuple(clauses))


def any_of(*predicates: Predicate) -> Predicate:
    clauses = []
    for predicate in predicates:
        if predicate is ALWAYS:
            return ALWAYS
        if predicate is NEVER:
            continue
        if isinstance(predicate, AnyOf):
            clauses.extend(predicate.clauses)
        else:
            clauses.append(predicate)
    if not clauses:
        return NEVER
    if len(clauses) == 1:
        return clauses[0]
    return AnyOf(tuple(clauses))
