"""Database layer - engine, base classes and session scope."""

from printflow_kernel.db.base import Base, IdType, TimestampedBase, UTCDateTime
from printflow_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)

__all__ = [
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "drop_tables",
    "reset_engine",
    "Base",
    "TimestampedBase",
    "UTCDateTime",
    "IdType",
]
