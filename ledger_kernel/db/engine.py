"""
Engine and session management for the ledger database.

PostgreSQL runs at READ COMMITTED; BalanceMaintainer takes row locks on the
accounts it touches.  SQLite has no row locks, so every transaction opens
with BEGIN IMMEDIATE and writers queue on the database lock for up to
``sqlite_busy_timeout`` seconds before the driver raises "database is
locked" (mapped to ConcurrencyError by the orchestrator).

The module keeps one process-wide engine, set by ``init_engine_from_url``.
Code that needs its own engine (tests, threads with separate databases)
calls ``build_engine`` directly.
"""

from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from ledger_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def _sqlite_options(database_url: str, busy_timeout: float) -> dict[str, Any]:
    if database_url in _MEMORY_URLS or "mode=memory" in database_url:
        # One shared connection, otherwise each checkout sees an empty database
        return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    return {"connect_args": {"check_same_thread": False, "timeout": busy_timeout}}


def _serialize_sqlite_writers(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # pysqlite's implicit BEGIN breaks SAVEPOINT and BEGIN IMMEDIATE
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    sqlite_busy_timeout: float = 30.0,
) -> Engine:
    """Create an engine for ``database_url`` without touching module state."""
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url, echo=echo, **_sqlite_options(database_url, sqlite_busy_timeout)
        )
        _serialize_sqlite_writers(engine)
        return engine

    return create_engine(
        database_url,
        echo=echo,
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        isolation_level="READ COMMITTED",
    )


def init_engine_from_url(database_url: str, echo: bool = False, **kwargs) -> Engine:
    """Build the process-wide engine and session factory, replacing any previous one."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = build_engine(database_url, echo=echo, **kwargs)
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info("engine_initialized", extra={"dialect": _engine.dialect.name})
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session() -> Session:
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory()


@contextmanager
def session_scope() -> Iterator[Session]:
    """Session that commits on normal exit and rolls back if the block raises."""
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def _metadata():
    from ledger_kernel.db.base import Base
    import ledger_kernel.models  # noqa: F401  registers tables on Base.metadata

    return Base.metadata


def create_tables(engine: Engine | None = None, install_listeners: bool = True) -> None:
    """Create every ledger table; by default also arm the immutability guards."""
    metadata = _metadata()
    metadata.create_all(engine or get_engine())

    if install_listeners:
        from ledger_kernel.db.immutability import register_immutability_listeners

        register_immutability_listeners()

    logger.info("tables_created", extra={"table_count": len(metadata.tables)})


def drop_tables(engine: Engine | None = None) -> None:
    _metadata().drop_all(engine or get_engine())


def reset_engine() -> None:
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None
