from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import Settings, get_settings
from .models import Base

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.close()


def make_engine(url: str, settings: Settings | None = None) -> Engine:
    """Create an engine backed by a bounded connection pool.

    In-memory SQLite gets a single shared connection so every session sees
    the same database; everything else uses a ``QueuePool`` sized from the
    settings, where checkout blocks for up to ``db_pool_timeout`` seconds.
    """
    settings = settings or get_settings()
    parsed = make_url(url)
    kwargs: dict[str, Any] = {}
    if parsed.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
        if parsed.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool
    if "poolclass" not in kwargs:
        kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_timeout=settings.db_pool_timeout,
            pool_pre_ping=True,
            pool_recycle=1800,
        )

    engine = create_engine(url, **kwargs)
    if parsed.get_backend_name() == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    logger.info("Database engine ready: %s", parsed.render_as_string(hide_password=True))
    return engine


def make_sessionmaker(bind: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=bind, autoflush=False, expire_on_commit=False)


engine = make_engine(get_settings().sqlalchemy_url)
SessionLocal = make_sessionmaker(engine)


def init_db(bind: Engine | None = None) -> None:
    Base.metadata.create_all(bind=bind or engine)
    logger.info("Database schema initialized")


def get_session() -> Iterator[Session]:
    """Yield a request-scoped session; its connection goes back to the pool on close."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@contextmanager
def transaction(session: Session) -> Iterator[Session]:
    """Run the enclosed statements as one unit of work.

    Commits when the block exits normally. Any exception, including a
    ``StorageError`` raised after a failed check, rolls back every
    statement issued in the block and is re-raised unchanged.
    """
    try:
        yield session
        session.commit()
    except Exception as exc:
        session.rollback()
        logger.warning("Transaction rolled back: %s", type(exc).__name__)
        raise
