"""
Unit of Work pattern implementation for managing transactions and repository instances.
"""

from contextlib import contextmanager
from typing import Optional
import logging

from sqlalchemy.orm import Session
from db.database import get_session
from db.repositories.organization_repository import OrganizationRepository

logger = logging.getLogger(__name__)


class UnitOfWork:
    """
    Unit of Work pattern implementation that manages a database session
    and provides access to all repositories within a single transaction.
    """

    def __init__(self, session: Optional[Session] = None):
        self._session = session
        self._owns_session = session is None
        self._organizations: Optional[OrganizationRepository] = None

    @property
    def session(self) -> Session:
        """Get the database session, creating one if needed."""
        if self._session is None:
            self._session = get_session()
        return self._session

    @property
    def organizations(self) -> OrganizationRepository:
        """Get the organizations repository."""
        if self._organizations is None:
            self._organizations = OrganizationRepository(self.session)
        return self._organizations

    def commit(self):
        """Commit the current transaction."""
        try:
            self.session.commit()
            logger.debug("Transaction committed successfully")
        except Exception as e:
            logger.error(f"Transaction commit failed: {e}")
            self.session.rollback()
            raise

    def rollback(self):
        """Rollback the current transaction."""
        self.session.rollback()
        logger.debug("Transaction rolled back")

    def close(self):
        """Close the session if we own it."""
        if self._owns_session and self._session:
            self._session.close()
            self._session = None
            logger.debug("Database session closed")

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit with automatic transaction management."""
        if exc_type is not None:
            logger.warning(f"Exception in UnitOfWork context: {exc_type.__name__}: {exc_val}")
            self.rollback()
        else:
            self.commit()

        # Always close if we own the session
        self.close()


@contextmanager
def get_unit_of_work():
    """Context manager for creating a Unit of Work with automatic cleanup."""
    uow = UnitOfWork()
    try:
        yield uow
        # If we get here without exception, commit
        uow.commit()
    except Exception as e:
        logger.error(f"Exception in Unit of Work: {e}")
        uow.rollback()
        raise
    finally:
        # Always close
        uow.close()
