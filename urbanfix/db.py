"""
Database engine and session management.

One DatabaseManager instance (``db``) per process. The API initializes it at
startup and obtains a session per request through ``get_db``.

Usage:
    from urbanfix.db import db

    db.initialize()
    with db.session() as session:
        total, issues = IssueRepository(session).list({"status": "Pending"})
"""

import time
from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import Engine, create_engine, event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from .config import get_settings
from .logging import get_logger

logger = get_logger("db")


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all models."""

    pass


def build_engine(url: str, debug: bool = False):
    """
    Create an engine with pool settings appropriate for the backend.

    In-memory SQLite needs a single shared connection; file SQLite and
    PostgreSQL use a regular pool so concurrent requests get their own
    connections.
    """
    settings = get_settings()
    is_sqlite = url.startswith("sqlite")
    is_memory = is_sqlite and (":memory:" in url or url.rstrip("/") == "sqlite:")

    connect_args: dict = {}
    pool_config: dict = {}
    if is_sqlite:
        connect_args = {
            "check_same_thread": False,
            "timeout": settings.db_statement_timeout_seconds,
        }
        if is_memory:
            pool_config = {"poolclass": StaticPool}
    else:
        connect_args = {
            "options": f"-c statement_timeout={settings.db_statement_timeout_seconds * 1000}"
        }
        pool_config = {
            "poolclass": QueuePool,
            "pool_size": settings.db_pool_size,
            "max_overflow": settings.db_max_overflow,
            "pool_pre_ping": settings.db_pool_pre_ping,
            "pool_timeout": settings.db_pool_timeout,
        }

    engine = create_engine(url, connect_args=connect_args, echo=debug, future=True, **pool_config)

    # Enable foreign keys for SQLite so timeline/upvote rows cascade with their issue
    if is_sqlite:

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


class DatabaseManager:
    """
    Owns the process-wide engine and session factory.

    Sessions handed out by ``session()`` commit when the block exits cleanly
    and roll back otherwise, so a failed request never leaves a partial
    issue, timeline entry or vote behind.
    """

    def __init__(self) -> None:
        self.engine: Engine | None = None
        self.SessionLocal: sessionmaker[Session] | None = None

    @property
    def is_initialized(self) -> bool:
        return self.engine is not None

    def initialize(self, database_url: str | None = None) -> None:
        """
        Create the engine and session factory. Later calls are no-ops.

        Args:
            database_url: Optional override. Uses settings.database_url if not provided.
        """
        if self.is_initialized:
            return

        settings = get_settings()
        self.engine = build_engine(database_url or settings.database_url, debug=settings.debug)
        self.SessionLocal = sessionmaker(
            bind=self.engine,
            autoflush=False,
            expire_on_commit=False,
        )
        logger.info(
            "database_engine_created",
            backend=self.engine.dialect.name,
            pool=type(self.engine.pool).__name__,
        )

    def create_all_tables(self) -> None:
        Base.metadata.create_all(bind=self._require_engine())

    def drop_all_tables(self) -> None:
        """Drop every table. Tests and local resets only."""
        Base.metadata.drop_all(bind=self._require_engine())

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """
        Transactional session scope.

        Usage:
            with db.session() as session:
                service = IssueLifecycleService(IssueRepository(session))
                service.upvote(issue_id, voter)
        """
        session = self.new_session()
        try:
            yield session
            session.commit()
        except Exception as exc:
            session.rollback()
            logger.debug("session_rolled_back", error_type=type(exc).__name__)
            raise
        finally:
            session.close()

    def new_session(self) -> Session:
        """Unmanaged session; the caller commits, rolls back and closes it."""
        self._require_engine()
        return self.SessionLocal()  # type: ignore[misc]

    def health_check(self) -> dict:
        """
        Run ``SELECT 1`` against the database.

        Returns:
            dict with 'healthy' (bool), 'backend' (dialect name or None),
            'latency_ms' (float) and 'error' (str or None)
        """
        if self.engine is None:
            return {
                "healthy": False,
                "backend": None,
                "latency_ms": 0,
                "error": "Database not initialized",
            }

        start = time.perf_counter()
        error = None
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            error = str(exc)
        return {
            "healthy": error is None,
            "backend": self.engine.dialect.name,
            "latency_ms": round((time.perf_counter() - start) * 1000, 2),
            "error": error,
        }

    def wait_until_ready(self, max_retries: int = 3, retry_delay: float = 2.0) -> None:
        """
        Block until the database answers, backing off linearly between tries.

        Raises:
            RuntimeError: If the database is still unreachable after max_retries.
        """
        for attempt in range(1, max_retries + 1):
            result = self.health_check()
            if result["healthy"]:
                logger.info("database_ready", attempt=attempt, latency_ms=result["latency_ms"])
                return
            logger.warning(
                "database_not_ready",
                attempt=attempt,
                max_retries=max_retries,
                error=result["error"],
            )
            if attempt < max_retries:
                time.sleep(retry_delay * attempt)

        raise RuntimeError(
            f"Database unreachable after {max_retries} attempts. "
            "Check DATABASE_URL configuration and database server status."
        )

    def reset(self) -> None:
        """Dispose the engine and forget it; the next initialize() starts fresh."""
        if self.engine is not None:
            self.engine.dispose()
        self.engine = None
        self.SessionLocal = None

    def _require_engine(self) -> Engine:
        if self.engine is None:
            raise RuntimeError("DatabaseManager not initialized. Call initialize() first.")
        return self.engine


db = DatabaseManager()


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency yielding a transactional session per request.

    The closing commit runs after the response is sent; routes that write
    commit themselves first.
    """
    with db.session() as session:
        yield session


__all__ = ["Base", "DatabaseManager", "build_engine", "db", "get_db"]
