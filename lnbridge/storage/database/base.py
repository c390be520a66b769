"""Database base configuration and session factory."""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import DateTime, Engine, MetaData, create_engine, event
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from lnbridge.utils.logging import get_logger

logger = get_logger(__name__)

# Naming convention for constraints
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=convention)


def utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all database models."""

    metadata = metadata

    def to_dict(self) -> dict[str, Any]:
        """Convert model to dictionary."""
        return {c.name: getattr(self, c.name) for c in self.__table__.columns}


class TimestampMixin:
    """Adds ``created_at`` to a model."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )


# Database engine and session (configured at runtime)
engine: Engine | None = None
SessionLocal: sessionmaker[Session] | None = None


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine, switching on foreign keys for SQLite.

    In-memory SQLite databases share one connection so every session sees
    the same data.
    """
    kwargs: dict[str, Any] = {"echo": echo, "pool_pre_ping": True, "hide_parameters": True}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool

    db_engine = create_engine(database_url, **kwargs)
    if db_engine.dialect.name == "sqlite":
        event.listen(db_engine, "connect", _enable_sqlite_foreign_keys)
    return db_engine


def create_session_factory(db_engine: Engine) -> sessionmaker[Session]:
    """Session factory bound to ``db_engine``."""
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=db_engine)


def init_db(database_url: str = "sqlite:///./lnbridge.db") -> sessionmaker[Session]:
    """Initialize the global engine and session factory, creating all tables."""
    global engine, SessionLocal

    # Register models on the metadata before create_all
    import lnbridge.storage.database.models  # noqa: F401
    import lnbridge.wallet.domain.models  # noqa: F401

    engine = create_db_engine(database_url)
    SessionLocal = create_session_factory(engine)

    Base.metadata.create_all(bind=engine)
    logger.info("database_initialized", dialect=engine.dialect.name)
    return SessionLocal


def dialect_insert(session: Session, table: Any) -> Any:
    """``INSERT`` construct supporting ``ON CONFLICT`` for the session's dialect."""
    dialect = session.get_bind().dialect.name
    if dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    elif dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    else:
        raise NotImplementedError(f"upserts are not supported on {dialect}")
    return insert(table)


def get_session() -> Session:
    """Create a session from the global factory."""
    if SessionLocal is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return SessionLocal()
