"""Database connection and transaction management."""

from contextlib import contextmanager
from typing import Any, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.sql import Executable

from docarchive import models  # noqa: F401  (registers every table on Base.metadata)
from docarchive.config import get_settings
from docarchive.models.base import Base
from docarchive.storage.normalize import normalize_row


@event.listens_for(Engine, "connect")
def _set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign keys for SQLite connections."""
    if type(dbapi_conn).__module__.startswith("sqlite3"):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


class Database:
    """Database connection manager with connection pooling and transaction handling.

    One instance is created at process start and handed to whatever needs it
    (the HTTP app factory, the MCP server); nothing reaches for a global.
    """

    def __init__(
        self,
        database_url: str | None = None,
        pool_size: int | None = None,
        max_overflow: int | None = None,
    ):
        """
        Initialize database connection.

        Args:
            database_url: Database connection URL. If None, reads from settings.
                          Supports PostgreSQL and SQLite.
            pool_size: Number of connections to maintain in the pool. If None, uses settings.
            max_overflow: Maximum number of connections beyond pool_size. If None, uses settings.
        """
        settings = get_settings()

        if database_url is None:
            database_url = settings.get_database_url()
        if pool_size is None:
            pool_size = settings.db_pool_size
        if max_overflow is None:
            max_overflow = settings.db_max_overflow

        self.database_url = database_url

        if database_url.startswith("sqlite"):
            engine_kwargs: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                # In-memory databases only exist on a single connection
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs = {
                "pool_size": pool_size,
                "max_overflow": max_overflow,
                "pool_timeout": settings.db_pool_timeout,
            }

        self.engine = create_engine(
            database_url,
            pool_pre_ping=True,
            echo=settings.sql_echo,
            **engine_kwargs,
        )

        self.SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=self.engine
        )

    def create_tables(self) -> None:
        """Create all database tables."""
        Base.metadata.create_all(bind=self.engine)

    def drop_tables(self) -> None:
        """Drop all database tables."""
        Base.metadata.drop_all(bind=self.engine)

    def dispose(self) -> None:
        self.engine.dispose()

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """
        Context manager for database sessions with automatic transaction handling.

        Usage:
            with db.session() as session:
                service = ArchiveService(session)
                service.archive(42)
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def get_session(self) -> Session:
        """
        Get a database session. Caller is responsible for closing.

        Returns:
            Database session
        """
        return self.SessionLocal()


def fetch_rows(session: Session, stmt: Executable, params: dict | None = None) -> list[dict[str, Any]]:
    """Execute a Core statement and return normalized plain-dict rows."""
    result = session.execute(stmt, params or {})
    return [normalize_row(row) for row in result.mappings()]


def fetch_scalar(session: Session, stmt: Executable, params: dict | None = None) -> Any:
    """Execute a statement returning one value and normalize it."""
    rows = fetch_rows(session, stmt, params)
    if not rows:
        return None
    return next(iter(rows[0].values()))
