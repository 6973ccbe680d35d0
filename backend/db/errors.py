"""Helpers for classifying driver errors raised on commit."""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

UNIQUE_VIOLATION_SQLSTATE = "23505"
_UNIQUE_MESSAGE_MARKERS = ("duplicate key", "unique constraint")


def is_unique_violation(error: IntegrityError, *, column: str | None = None) -> bool:
    """Tell whether ``error`` is a unique-constraint failure.

    Postgres drivers expose SQLSTATE 23505. SQLite only has the message text,
    e.g. ``UNIQUE constraint failed: users.email``. When ``column`` is given
    the failure must also mention it, which holds for both the SQLite message
    and the Postgres index name (``ix_users_email``).
    """
    driver_error = getattr(error, "orig", None)
    message = str(driver_error or error).lower()
    sqlstate = getattr(driver_error, "sqlstate", None) or getattr(driver_error, "pgcode", None)
    unique = sqlstate == UNIQUE_VIOLATION_SQLSTATE or any(
        marker in message for marker in _UNIQUE_MESSAGE_MARKERS
    )
    if not unique or column is None:
        return unique
    return column.lower() in message


__all__ = ["UNIQUE_VIOLATION_SQLSTATE", "is_unique_violation"]
