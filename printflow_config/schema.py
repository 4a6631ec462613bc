"""
Printflow configuration schema.

Frozen dataclasses the YAML configuration sets are parsed into.  The
loader is the only producer; services receive these values through
constructor parameters and never read YAML themselves.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from printflow_kernel.domain.roles import Role

# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection settings for the SQL order store."""

    url: str = "sqlite:///printflow.db"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


@dataclass(frozen=True)
class RolesConfig:
    """Legacy role labels accepted from the identity service."""

    aliases: dict[str, Role] = field(default_factory=dict)


@dataclass(frozen=True)
class NotificationsConfig:
    enabled: bool = True


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PrintflowConfig:
    """A complete, validated configuration set."""

    name: str
    version: int = 1
    description: str = ""
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    roles: RolesConfig = field(default_factory=RolesConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)
