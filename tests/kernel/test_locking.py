"""
Tests for lock-contention translation.

Validates:
- PostgreSQL SQLSTATEs for deadlock / serialization / lock timeout are
  recognised
- SQLite "database is locked" is recognised
- Other database errors propagate unchanged
"""

import pytest
from sqlalchemy.exc import DBAPIError, IntegrityError

from erp_kernel.db.locking import is_concurrency_conflict, translate_concurrency_errors
from erp_kernel.exceptions import ConcurrencyConflictError


class _FakeDriverError(Exception):
    def __init__(self, message: str, pgcode: str | None = None):
        super().__init__(message)
        self.pgcode = pgcode


def _dbapi_error(message: str, pgcode: str | None = None) -> DBAPIError:
    return DBAPIError("SELECT 1", {}, _FakeDriverError(message, pgcode))


class TestIsConcurrencyConflict:

    @pytest.mark.parametrize("pgcode", ["40001", "40P01", "55P03"])
    def test_postgres_sqlstates(self, pgcode):
        assert is_concurrency_conflict(_dbapi_error("boom", pgcode))

    def test_sqlite_locked(self):
        assert is_concurrency_conflict(_dbapi_error("database is locked"))

    def test_integrity_error_is_not_conflict(self):
        error = IntegrityError("INSERT", {}, _FakeDriverError("UNIQUE constraint failed"))
        assert not is_concurrency_conflict(error)

    def test_plain_exception_is_not_conflict(self):
        assert not is_concurrency_conflict(RuntimeError("database is locked"))


class TestTranslateConcurrencyErrors:

    def test_conflict_translated(self):
        with pytest.raises(ConcurrencyConflictError) as exc_info:
            with translate_concurrency_errors("start_production"):
                raise _dbapi_error("deadlock detected", "40P01")
        assert exc_info.value.operation == "start_production"
        assert exc_info.value.retryable is True
        assert isinstance(exc_info.value.__cause__, DBAPIError)

    def test_other_database_errors_propagate(self):
        with pytest.raises(DBAPIError):
            with translate_concurrency_errors("adjust_stock"):
                raise _dbapi_error("syntax error", "42601")

    def test_domain_errors_untouched(self):
        with pytest.raises(ValueError):
            with translate_concurrency_errors("adjust_stock"):
                raise ValueError("zero delta")
