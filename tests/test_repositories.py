"""Tests for the repository read-retry and commit policies."""

import pytest
import sqlalchemy.exc

from filevault.exceptions import ExternalStoreFailure
from filevault.repositories.base import read_with_retry
from filevault.repositories.user_repository import UserRepository
from tests.conftest import make_user


def _transient():
    return sqlalchemy.exc.OperationalError("SELECT 1", {}, Exception("server closed the connection"))


class TestReadRetry:

    def test_one_transient_error_is_retried(self, db):
        calls = []

        def _read():
            calls.append(1)
            if len(calls) == 1:
                raise _transient()
            return "rows"

        assert read_with_retry(db, _read, what="listing") == "rows"
        assert len(calls) == 2

    def test_second_transient_error_becomes_store_failure(self, db):
        calls = []

        def _read():
            calls.append(1)
            raise _transient()

        with pytest.raises(ExternalStoreFailure):
            read_with_retry(db, _read, what="listing")
        assert len(calls) == 2

    def test_non_transient_error_is_not_retried(self, db):
        calls = []

        def _read():
            calls.append(1)
            raise sqlalchemy.exc.ProgrammingError("SELECT nope", {}, Exception("no such column"))

        with pytest.raises(ExternalStoreFailure):
            read_with_retry(db, _read)
        assert len(calls) == 1


class TestUserRepository:

    def test_lookup_by_email_is_case_insensitive(self, db):
        user = make_user(db, "Carol@Example.com", "Carol")
        assert UserRepository(db).get_by_email("carol@example.COM").id == user.id

    def test_lookup_retries_transient_error(self, db, monkeypatch):
        user = make_user(db)
        repo = UserRepository(db)
        real_query = db.query
        failures = []

        def _flaky_query(*entities):
            if not failures:
                failures.append(1)
                raise _transient()
            return real_query(*entities)

        monkeypatch.setattr(db, "query", _flaky_query)
        assert repo.get_by_id(user.id).email == user.email
        assert failures == [1]
