"""
Module: inventory_kernel.db.engine
Responsibility: SQLAlchemy engine initialization, session factory management,
    and transactional scope utilities.  This is the single point of database
    connection configuration for the entire system.
Architecture position: Kernel > DB.  May import from db/base.py.
    MUST NOT import from services/, selectors/, domain/, or outer layers
    (except for create_tables/drop_tables which import models).

Supported backends:
    - PostgreSQL 15+ at READ COMMITTED, with explicit row-level locking
      (SELECT ... FOR UPDATE) on counters, documents and stock rows.  Lock
      waits are bounded by the ``lock_timeout`` connection option.
    - SQLite (tests, local use).  Every transaction starts with
      ``BEGIN IMMEDIATE`` so writers are serialized at transaction start;
      lock waits are bounded by the busy timeout.

Failure modes:
    - RuntimeError if get_engine/get_session/get_session_factory called before
      init_engine_from_url().
    - OperationalError on lock timeout (translated to ContentionError by
      the orchestrator, see db/contention.py).
    - Connection pool exhaustion if pool_size + max_overflow is exceeded.

Audit relevance:
    All database transactions flow through sessions created by this module.
    The session_scope() context manager ensures atomic commit-or-rollback
    semantics.
"""

import atexit
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from inventory_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

# Module-level engine and session factory
_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None

DEFAULT_LOCK_TIMEOUT_MS = 5000


def _install_sqlite_transaction_hooks(engine: Engine, busy_timeout_ms: int) -> None:
    """
    Take over transaction control from pysqlite.

    pysqlite's own BEGIN handling defers locking and breaks SAVEPOINT
    semantics; disabling it and emitting BEGIN IMMEDIATE ourselves gives
    serialized writers and working nested transactions.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute(f"PRAGMA busy_timeout={int(busy_timeout_ms)}")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    lock_timeout_ms: int = DEFAULT_LOCK_TIMEOUT_MS,
) -> Engine:
    """
    Initialize the SQLAlchemy engine from a database URL.

    Postconditions: Module-level _engine and _SessionFactory are initialized.
        All subsequent get_engine/get_session calls use this engine.

    Args:
        database_url: PostgreSQL or file-backed SQLite URL.
        echo: If True, log all SQL statements.
        pool_size: Number of connections to keep in the pool.
        max_overflow: Max connections beyond pool_size.
        pool_pre_ping: If True, test connections before use.
        pool_timeout: Seconds to wait for a pooled connection.
        pool_recycle: Seconds after which a connection is recycled.
        lock_timeout_ms: Upper bound on any single lock wait.

    Returns:
        SQLAlchemy Engine instance.
    """
    global _engine, _SessionFactory

    url = make_url(database_url)
    dialect = url.get_backend_name()

    if dialect == "sqlite":
        if url.database in (None, "", ":memory:"):
            raise ValueError(
                "In-memory SQLite cannot be shared across connections; "
                "use a file-backed database URL"
            )
        _engine = create_engine(
            database_url,
            echo=echo,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
            pool_timeout=pool_timeout,
            connect_args={
                "check_same_thread": False,
                "timeout": lock_timeout_ms / 1000,
            },
        )
        _install_sqlite_transaction_hooks(_engine, lock_timeout_ms)
    else:
        _engine = create_engine(
            database_url,
            echo=echo,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            isolation_level="READ COMMITTED",
            connect_args={"options": f"-c lock_timeout={int(lock_timeout_ms)}"},
        )

    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={
            "dialect": dialect,
            "pool_size": pool_size,
            "max_overflow": max_overflow,
            "lock_timeout_ms": lock_timeout_ms,
            "echo": echo,
        },
    )

    return _engine


def get_engine() -> Engine:
    """
    Get the current engine instance.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session() -> Session:
    """
    Get a new session instance.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory()


def get_session_factory() -> sessionmaker[Session]:
    """
    Get the session factory for creating sessions.

    Useful for multi-threaded scenarios where each thread needs its own session.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    Postconditions: On normal exit, session is committed and closed.
        On exception, session is rolled back and closed.  The exception
        is re-raised to the caller.

    Usage:
        with session_scope() as session:
            session.add(entity)
    """
    session = get_session()
    logger.debug("transaction_started")
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """
    Create all tables defined in the models.

    Preconditions: Engine must be initialized via init_engine_from_url().
    Postconditions: All tables exist in the database.
    """
    from inventory_kernel.db.base import Base
    import inventory_kernel.models  # noqa: F401  (registers all mappers)

    engine = get_engine()
    Base.metadata.create_all(engine)
    logger.info(
        "tables_created",
        extra={"table_count": len(Base.metadata.sorted_tables)},
    )


def drop_tables() -> None:
    """
    Drop all tables. Use with caution - primarily for testing.
    """
    from inventory_kernel.db.base import Base
    import inventory_kernel.models  # noqa: F401

    engine = get_engine()
    Base.metadata.drop_all(engine)


def reset_engine() -> None:
    """
    Reset the engine and session factory.

    Useful for test cleanup.
    """
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
        _engine = None

    _SessionFactory = None


def _atexit_dispose():
    """Dispose the engine on process exit to release all pooled connections."""
    if _engine is not None:
        _engine.dispose()


atexit.register(_atexit_dispose)


def is_postgres() -> bool:
    """Check if the current engine is PostgreSQL."""
    if _engine is None:
        return False
    return _engine.dialect.name == "postgresql"
