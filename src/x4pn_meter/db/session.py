"""Database session configuration."""

from __future__ import annotations

from collections.abc import Generator
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from x4pn_meter.core.settings import settings


class Base(DeclarativeBase):
    """Declarative base shared by all ORM models."""


# Ensure model modules are imported so that metadata is populated when create_all runs.
import x4pn_meter.models  # noqa: E402,F401


def enable_sqlite_transactions(target: Engine, *, immediate: bool = True) -> Engine:
    """Let SQLAlchemy, not pysqlite, decide when SQLite transactions begin.

    With ``immediate`` every transaction takes the write lock up front, so
    concurrent writers wait on the busy timeout instead of failing on a
    shared-to-reserved lock upgrade.
    """

    @event.listens_for(target, "connect")
    def _disable_pysqlite_begin(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(target, "begin")
    def _emit_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE" if immediate else "BEGIN")

    return target


def build_engine(url: str) -> Engine:
    """Create an engine for `url`, applying SQLite locking when relevant."""
    if url.startswith("sqlite"):
        sqlite_engine = create_engine(
            url,
            echo=settings.sql_debug,
            connect_args={
                "check_same_thread": False,
                "timeout": settings.sqlite_busy_timeout_seconds,
            },
        )
        return enable_sqlite_transactions(sqlite_engine)
    return create_engine(url, pool_pre_ping=True, echo=settings.sql_debug)


engine = build_engine(settings.effective_database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Yield a database session for dependency injection."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables() -> None:
    """Create all database tables."""
    Base.metadata.create_all(bind=engine)


def drop_tables() -> None:
    """Drop all database tables."""
    Base.metadata.drop_all(bind=engine)
