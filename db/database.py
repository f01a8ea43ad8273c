"""
Database connection and session management.

PostgreSQL in deployment; SQLite URLs are accepted for local runs and tests.
"""

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import NullPool, StaticPool
from contextlib import contextmanager
import logging

from config import DATABASE_URL, PGAPPNAME

logger = logging.getLogger(__name__)

# Session factory, bound lazily by init_engine()
SessionFactory = sessionmaker()
engine = None


def _build_engine(database_url: str):
    if database_url.startswith("sqlite"):
        # Single shared connection so in-memory databases survive across sessions
        return create_engine(
            database_url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
            echo=False
        )
    return create_engine(
        database_url,
        # Use NullPool for simplicity in development
        poolclass=NullPool,
        # Set application name for connection tracking
        connect_args={"application_name": PGAPPNAME},
        echo=False  # Set to True for SQL logging
    )


def init_engine(database_url=None):
    """Create the engine and bind the session factory to it."""
    global engine
    if engine is not None:
        engine.dispose()
    engine = _build_engine(database_url or DATABASE_URL)
    SessionFactory.configure(bind=engine)
    return engine


def get_engine():
    """Get the current engine, creating it from config if needed."""
    if engine is None:
        init_engine()
    return engine


def get_session() -> Session:
    """Get a new database session."""
    get_engine()
    return SessionFactory()


@contextmanager
def get_session_context():
    """Context manager for database sessions with automatic cleanup."""
    session = get_session()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def test_connection() -> bool:
    """Test database connection and return True if successful."""
    try:
        with get_session_context() as session:
            result = session.execute(text("SELECT 1"))
            return result.scalar() == 1
    except Exception as e:
        logger.error(f"Database connection test failed: {e}")
        return False


def create_tables(database_url=None):
    """Create all tables defined in the ORM models.

    Args:
        database_url: Optional database URL. If provided, the engine is rebuilt for it.
    """
    try:
        from db.models.models import Base
        if database_url:
            init_engine(database_url)
        Base.metadata.create_all(get_engine())
        logger.info("All tables created successfully")
    except Exception as e:
        logger.error(f"Failed to create tables: {e}")
        raise
