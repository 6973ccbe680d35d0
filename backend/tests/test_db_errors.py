import pytest
from sqlalchemy.exc import IntegrityError

from db.errors import is_unique_violation


class FakePostgresError(Exception):
    sqlstate = "23505"


def _integrity_error(orig: Exception) -> IntegrityError:
    return IntegrityError("INSERT INTO users ...", {}, orig)


def test_sqlite_unique_message():
    error = _integrity_error(Exception("UNIQUE constraint failed: users.email"))

    assert is_unique_violation(error)
    assert is_unique_violation(error, column="email")
    assert not is_unique_violation(error, column="name")


def test_postgres_sqlstate():
    error = _integrity_error(
        FakePostgresError('duplicate key value violates unique constraint "ix_users_email"')
    )

    assert is_unique_violation(error, column="email")


@pytest.mark.parametrize(
    "message",
    [
        "NOT NULL constraint failed: users.name",
        "FOREIGN KEY constraint failed",
    ],
)
def test_other_integrity_errors(message):
    assert not is_unique_violation(_integrity_error(Exception(message)))
