"""Database connection and session management."""

import time
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from assetgrid.config import settings
from assetgrid.observability.metrics import metrics


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""

    pass


def engine_options(database_url: str) -> dict[str, Any]:
    """Pool and driver options for the given backend."""
    if database_url.startswith("sqlite"):
        return {"connect_args": {"timeout": settings.sqlite_busy_timeout_seconds}}
    return {"pool_pre_ping": True, "pool_size": 20, "max_overflow": 10}


def attach_query_metrics(target_engine: AsyncEngine) -> None:
    """Attach SQLAlchemy event listeners for query metrics."""
    sync_engine = target_engine.sync_engine
    if getattr(sync_engine, "_assetgrid_metrics_attached", False):
        return

    @event.listens_for(sync_engine, "before_cursor_execute")
    def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        conn.info["query_start_time"] = time.perf_counter()

    @event.listens_for(sync_engine, "after_cursor_execute")
    def after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        start_time = conn.info.pop("query_start_time", None)
        if start_time is None:
            return
        metrics.inc_counter("db.query.count")
        metrics.observe("db.query.duration_ms", (time.perf_counter() - start_time) * 1000.0)

    sync_engine._assetgrid_metrics_attached = True


def configure_sqlite_transactions(target_engine: AsyncEngine) -> None:
    """
    Take transaction control away from the sqlite3 driver.

    The driver's implicit BEGIN breaks SAVEPOINT handling, and a deferred
    BEGIN lets two writers deadlock on lock promotion. Every transaction
    therefore opens with BEGIN IMMEDIATE so writers queue on the busy
    timeout instead.
    """
    if target_engine.dialect.name != "sqlite":
        return
    sync_engine = target_engine.sync_engine

    @event.listens_for(sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine with metrics and backend-specific hooks attached."""
    new_engine = create_async_engine(database_url, echo=echo, **engine_options(database_url))
    configure_sqlite_transactions(new_engine)
    attach_query_metrics(new_engine)
    return new_engine


engine = build_engine(settings.database_url, echo=settings.debug)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def init_db() -> None:
    """Initialize database tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()

