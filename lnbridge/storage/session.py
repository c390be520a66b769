"""Database session management with the context manager pattern.

Usage:
    with db_session() as db:
        db.add(record)
        db.commit()

    # Explicit factory (repositories and tests)
    with db_session(session_factory) as db:
        ...
"""

from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy.orm import Session, sessionmaker

from lnbridge.utils.logging import get_logger

logger = get_logger(__name__)


@contextmanager
def db_session(
    session_factory: sessionmaker[Session] | None = None,
) -> Generator[Session, None, None]:
    """Context manager for database sessions with automatic cleanup.

    Rolls back and re-raises on any exception; always closes the session.
    Changes are only persisted by an explicit ``commit()``.

    Args:
        session_factory: Factory to draw the session from. Defaults to the
            global factory configured by ``init_db``.

    Raises:
        RuntimeError: If no factory is given and the database is not initialized
    """
    if session_factory is None:
        from lnbridge.storage.database.base import get_session

        db = get_session()
    else:
        db = session_factory()

    try:
        logger.debug("db_session_created", session_id=id(db))
        yield db
    except Exception as e:
        logger.error(
            "db_session_error_rollback",
            error=str(e),
            error_type=type(e).__name__,
            session_id=id(db),
        )
        db.rollback()
        raise
    finally:
        logger.debug("db_session_closed", session_id=id(db))
        db.close()
