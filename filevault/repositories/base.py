"""Base repository with shared get-by-ID patterns and store-failure handling.

Subclasses set ``model_class`` and ``not_found_error``; the base provides
lookups, the read-retry policy, and the commit wrapper every write goes
through.

Failure policy:
    - Reads (lookups and queries) are idempotent and retried once when the
      database reports a transient error, then surface as
      ``ExternalStoreFailure``.
    - Writes are never retried. A failed commit is rolled back and surfaces as
      ``ExternalStoreFailure`` (or ``ConflictError`` when an optimistic-lock
      check lost a race); the caller must re-submit.
"""

import logging
from typing import Callable, TypeVar, Generic, Optional, Type

import sqlalchemy.exc
from sqlalchemy.orm import Session, Query
from sqlalchemy.orm.exc import StaleDataError

from ..database import Base
from ..exceptions import ConflictError, ExternalStoreFailure, FileVaultException

ModelT = TypeVar("ModelT", bound=Base)
T = TypeVar("T")

logger = logging.getLogger(__name__)

# Errors that indicate the connection, not the query, was the problem.
_TRANSIENT_ERRORS = (sqlalchemy.exc.OperationalError, sqlalchemy.exc.InterfaceError)


def read_with_retry(db: Session, fn: Callable[[], T], what: str = "read") -> T:
    """Run an idempotent read, retrying once on a transient database error."""
    try:
        return fn()
    except _TRANSIENT_ERRORS as e:
        logger.warning("Transient database error during %s, retrying once: %s", what, e)
        db.rollback()
    except sqlalchemy.exc.SQLAlchemyError as e:
        db.rollback()
        raise ExternalStoreFailure(f"Database {what} failed", original_error=e) from e

    try:
        return fn()
    except sqlalchemy.exc.SQLAlchemyError as e:
        db.rollback()
        raise ExternalStoreFailure(f"Database {what} failed", original_error=e) from e


def commit_or_raise(db: Session, resource_id: str = "", what: str = "write") -> None:
    """Commit the session. Never retries; rolls back and raises on failure."""
    try:
        db.commit()
    except StaleDataError as e:
        db.rollback()
        raise ConflictError(resource_id) from e
    except sqlalchemy.exc.SQLAlchemyError as e:
        db.rollback()
        logger.error("Database %s failed: %s", what, e, extra={"resource_id": resource_id})
        raise ExternalStoreFailure(f"Database {what} failed", original_error=e) from e


class BaseRepository(Generic[ModelT]):
    """Shared repository logic for SQLAlchemy models.

    Class variables to set in subclasses:
        model_class:     The SQLAlchemy model (e.g., Folder)
        id_column:       Name of the primary-key column (default "id")
        not_found_error: Exception class to raise from get_by_id
    """

    model_class: Type[ModelT]
    id_column: str = "id"
    not_found_error: Type[FileVaultException]

    def __init__(self, db: Session):
        self.db = db

    def _base_query(self) -> Query:
        return self.db.query(self.model_class)

    def _read(self, fn: Callable[[], T], what: str = "read") -> T:
        return read_with_retry(self.db, fn, what)

    def get_by_id(self, entity_id: str) -> ModelT:
        """Get entity by primary key. Raises not_found_error if missing."""
        entity = self.get_by_id_optional(entity_id)
        if entity is None:
            raise self.not_found_error(entity_id)
        return entity

    def get_by_id_optional(self, entity_id: Optional[str]) -> Optional[ModelT]:
        """Get entity by primary key, or None if not found."""
        if entity_id is None:
            return None
        col = getattr(self.model_class, self.id_column)
        return self._read(
            lambda: self._base_query().filter(col == entity_id).first(),
            what=f"{self.model_class.__tablename__} lookup",
        )

    def add(self, entity: ModelT) -> ModelT:
        self.db.add(entity)
        return entity

    def delete(self, entity: ModelT) -> None:
        self.db.delete(entity)

    def commit(self, resource_id: str = "") -> None:
        commit_or_raise(self.db, resource_id, what=f"{self.model_class.__tablename__} write")
