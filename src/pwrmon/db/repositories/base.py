"""Base repository class."""

from collections.abc import Generator
from contextlib import contextmanager
from typing import Generic, TypeVar

import structlog
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from pwrmon.db.base import Base
from pwrmon.utils.exceptions import DuplicateKeyError, NotFoundError, StoreUnavailableError

ModelT = TypeVar("ModelT", bound=Base)

logger = structlog.get_logger(__name__)


class BaseRepository(Generic[ModelT]):
    """Base repository with common CRUD operations."""

    model: type[ModelT]

    def __init__(self, session: Session) -> None:
        """Initialize repository with a session.

        Args:
            session: SQLAlchemy session.
        """
        self.session = session

    @contextmanager
    def translate_errors(self) -> Generator[None, None, None]:
        """Map driver failures onto the domain error taxonomy.

        Raises:
            DuplicateKeyError: On a unique constraint violation.
            StoreUnavailableError: If the database is unreachable or times out.
        """
        try:
            yield
        except IntegrityError as e:
            self.session.rollback()
            raise DuplicateKeyError(f"Duplicate {self.model.__tablename__} entry") from e
        except (OperationalError, PoolTimeoutError) as e:
            self.session.rollback()
            logger.error("Database operation failed", table=self.model.__tablename__, error=str(e))
            raise StoreUnavailableError("Database unavailable") from e

    def find(self, id: int) -> ModelT | None:
        """Get a record by its primary key.

        Args:
            id: Primary key value.

        Returns:
            Model instance or None if not found.
        """
        with self.translate_errors():
            return self.session.get(self.model, id)

    def get_by_id(self, id: int) -> ModelT:
        """Get a record by its primary key.

        Args:
            id: Primary key value.

        Returns:
            Model instance.

        Raises:
            NotFoundError: If no record has this key.
        """
        instance = self.find(id)
        if instance is None:
            raise NotFoundError(f"{self.model.__name__} {id} not found")
        return instance

    def add(self, instance: ModelT) -> ModelT:
        """Add a new record.

        Args:
            instance: Model instance to add.

        Returns:
            The added instance.
        """
        with self.translate_errors():
            self.session.add(instance)
            self.session.flush()
        return instance

    def delete(self, instance: ModelT) -> None:
        """Delete a record.

        Args:
            instance: Model instance to delete.
        """
        with self.translate_errors():
            self.session.delete(instance)
            self.session.flush()

    def commit(self) -> None:
        """Commit the current unit of work."""
        with self.translate_errors():
            self.session.commit()
