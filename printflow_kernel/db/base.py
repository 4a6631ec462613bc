"""
Module: printflow_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.  Provides
    the integer primary key convention, the type annotation map for consistent
    column types, and the TimestampedBase mixin for row timestamps.
Architecture position: Kernel > DB.  This is the lowest-level import target
    within the kernel.  ALL model files import from here.  This module MUST NOT
    import from models/, selectors/, domain/, or outer layers.

Invariants enforced:
    - Integer primary keys: every model inherits an autoincrementing id.
      BIGINT on PostgreSQL, INTEGER on SQLite (SQLite only autoincrements
      an INTEGER PRIMARY KEY).
    - Timezone-aware timestamps: UTCDateTime returns aware datetimes even
      on backends that drop the offset.
"""

from datetime import datetime, timezone
from typing import ClassVar

from sqlalchemy import BigInteger, DateTime, Integer, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

# BIGINT everywhere except SQLite, where only INTEGER PRIMARY KEY is a rowid alias.
IdType = BigInteger().with_variant(Integer, "sqlite")


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime stored as DateTime(timezone=True).

    Contract:
        process_bind_param: aware datetime -> UTC datetime on INSERT/UPDATE.
        process_result_value: naive values (SQLite) are read back as UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            return value.astimezone(timezone.utc)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - id is an autoincrementing integer assigned by the database.
        - datetime maps to UTCDateTime -- always timezone-aware.
        - int maps to IdType.
    """

    type_annotation_map: ClassVar[dict] = {
        datetime: UTCDateTime(),
        int: IdType,
    }

    id: Mapped[int] = mapped_column(
        IdType,
        primary_key=True,
        autoincrement=True,
    )


class TimestampedBase(Base):
    """
    Abstract base with row creation and update timestamps.

    Guarantees:
        - created_at is set to server NOW() on INSERT and never changes.
        - updated_at auto-updates on every ORM UPDATE.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
