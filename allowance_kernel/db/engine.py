"""
Module: allowance_kernel.db.engine
Responsibility: Owns the process-wide engine and session factory that the
    hosted service and scripts share.  Tests and embedders that manage
    their own engine never need to call into this module.
Architecture position: Kernel > DB.  Imports models only inside
    create_tables/drop_tables, to register their tables.

Invariants enforced:
    - PostgreSQL runs at READ COMMITTED.  Atomicity of check-then-set
      comes from explicit ``FOR UPDATE`` on application and custody rows,
      not from the isolation level.
    - SQLite gets real BEGIN/SAVEPOINT semantics: pysqlite's own
      transaction handling is switched off and SQLAlchemy emits BEGIN.
      In-memory databases share one connection (StaticPool), otherwise
      each thread would see an empty database.

Failure modes:
    - RuntimeError from the accessors before init_engine_from_url().
"""

from contextlib import contextmanager
from typing import Any, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from allowance_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_MEMORY_URLS = frozenset({"sqlite://", "sqlite:///:memory:"})

POSTGRES_POOL_DEFAULTS: dict[str, Any] = {
    "pool_size": 20,
    "max_overflow": 10,
    "pool_pre_ping": True,
    "pool_timeout": 30,
    "pool_recycle": 1800,
}

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def _sqlite_engine(database_url: str, echo: bool) -> Engine:
    engine = create_engine(
        database_url,
        echo=echo,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool if database_url in _MEMORY_URLS else QueuePool,
    )

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def init_engine_from_url(database_url: str, echo: bool = False, **pool_options: Any) -> Engine:
    """
    Create the process-wide engine and session factory for ``database_url``.

    ``pool_options`` override ``POSTGRES_POOL_DEFAULTS`` and are ignored
    for SQLite.  A previous engine is replaced but not disposed: callers
    that still hold it keep working.
    """
    global _engine, _SessionFactory

    if database_url.startswith("sqlite"):
        _engine = _sqlite_engine(database_url, echo)
    else:
        _engine = create_engine(
            database_url,
            echo=echo,
            poolclass=QueuePool,
            isolation_level="READ COMMITTED",
            **{**POSTGRES_POOL_DEFAULTS, **pool_options},
        )
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info("engine_initialized", extra={"dialect": _engine.dialect.name, "echo": echo})
    return _engine


def _not_initialized() -> RuntimeError:
    return RuntimeError("Engine not initialized. Call init_engine_from_url() first.")


def get_engine() -> Engine:
    if _engine is None:
        raise _not_initialized()
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """Factory for per-thread sessions bound to the current engine."""
    if _SessionFactory is None:
        raise _not_initialized()
    return _SessionFactory


def get_session() -> Session:
    return get_session_factory()()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    One transaction: commit on normal exit, roll back and re-raise on error.

    Usage::

        with session_scope() as session:
            SqlCustodyLedger(session).fund(500, "treasury")
    """
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
    from allowance_kernel.db.base import Base
    import allowance_kernel.models  # noqa: F401  (registers all tables)

    return Base.metadata


def create_tables(engine: Engine | None = None) -> None:
    _metadata().create_all(engine or get_engine())


def drop_tables(engine: Engine | None = None) -> None:
    """Drop every kernel table. Test and teardown use only."""
    _metadata().drop_all(engine or get_engine())


def reset_engine() -> None:
    """Dispose the process-wide engine and forget the session factory."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None
