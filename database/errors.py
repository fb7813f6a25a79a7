"""
Constraint-violation classification for store errors.

SQLAlchemy wraps driver errors in IntegrityError; the driver-specific
details (SQLSTATE, constraint name) live on the wrapped exception and
differ between asyncpg and psycopg. classify_integrity_error() reduces
them to a ConstraintViolation so callers can branch on which constraint
fired without knowing the driver.
"""

from dataclasses import dataclass
from enum import Enum as PyEnum

from sqlalchemy.exc import IntegrityError


class ConstraintKind(str, PyEnum):
    UNIQUE = "UNIQUE"
    FOREIGN_KEY = "FOREIGN_KEY"
    CHECK = "CHECK"
    NOT_NULL = "NOT_NULL"


# PostgreSQL SQLSTATE class 23 (integrity constraint violation)
SQLSTATE_KINDS = {
    "23505": ConstraintKind.UNIQUE,
    "23503": ConstraintKind.FOREIGN_KEY,
    "23514": ConstraintKind.CHECK,
    "23502": ConstraintKind.NOT_NULL,
}


@dataclass(frozen=True)
class ConstraintViolation:
    """A store constraint that rejected a write."""

    kind: ConstraintKind
    constraint_name: str | None = None

    def matches(self, kind: ConstraintKind, constraint_name: str) -> bool:
        return self.kind == kind and self.constraint_name == constraint_name


def _driver_errors(exc: IntegrityError) -> list[BaseException]:
    """The wrapped DBAPI error followed by its cause chain."""
    errors: list[BaseException] = []
    current: BaseException | None = exc.orig
    while current is not None and current not in errors:
        errors.append(current)
        current = current.__cause__
    return errors


def _sqlstate(error: BaseException) -> str | None:
    for attr in ("sqlstate", "pgcode"):
        value = getattr(error, attr, None)
        if isinstance(value, str):
            return value
    return None


def _constraint_name(error: BaseException) -> str | None:
    # asyncpg exposes it directly, psycopg through the diagnostics object
    value = getattr(error, "constraint_name", None)
    if isinstance(value, str):
        return value
    diag = getattr(error, "diag", None)
    value = getattr(diag, "constraint_name", None)
    if isinstance(value, str):
        return value
    return None


def classify_integrity_error(exc: IntegrityError) -> ConstraintViolation | None:
    """
    Map an IntegrityError to the constraint that caused it.

    Args:
        exc: Error raised by SQLAlchemy for a rejected write

    Returns:
        ConstraintViolation with kind and (when the driver reports it)
        constraint name, or None if no SQLSTATE in class 23 is present.
    """
    kind = None
    name = None
    for error in _driver_errors(exc):
        if kind is None:
            kind = SQLSTATE_KINDS.get(_sqlstate(error) or "")
        if name is None:
            name = _constraint_name(error)

    if kind is None:
        return None
    return ConstraintViolation(kind=kind, constraint_name=name)
