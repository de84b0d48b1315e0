"""Database layer - engine, declarative base and immutability listeners."""

from allowance_kernel.db.base import NAMING_CONVENTION, Base
from allowance_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)

__all__ = [
    "Base",
    "NAMING_CONVENTION",
    "create_tables",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_engine_from_url",
    "session_scope",
]
