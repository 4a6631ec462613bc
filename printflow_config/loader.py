"""
Configuration Loader (``printflow_config.loader``).

Responsibility
--------------
Loads a YAML configuration set and parses it into the frozen
``printflow_config.schema`` dataclasses.  The single public entry point
for runtime config is ``printflow_config.get_active_config()``.

Invariants enforced
-------------------
* Unknown top-level sections and unknown keys inside a section raise
  ``ValueError``; typos never silently fall back to defaults.
* Role aliases must target a canonical role.
* Every parsed object is a frozen dataclass from ``schema.py``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing ``name`` or invalid values  -> ``ValueError``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from printflow_config.schema import (
    DatabaseConfig,
    LoggingConfig,
    NotificationsConfig,
    PrintflowConfig,
    RolesConfig,
)
from printflow_kernel.domain.roles import Role

_SECTIONS = frozenset({"database", "logging", "roles", "notifications"})
_ROOT_KEYS = _SECTIONS | {"name", "version", "description"}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _check_keys(section: str, data: dict[str, Any], allowed: set[str] | frozenset[str]) -> None:
    unknown = set(data) - set(allowed)
    if unknown:
        raise ValueError(f"Unknown keys in {section}: {sorted(unknown)}")


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    _check_keys("database", data, {"url", "echo", "pool_size", "max_overflow"})
    defaults = DatabaseConfig()
    url = data.get("url", defaults.url)
    if not isinstance(url, str) or not url:
        raise ValueError("database.url must be a non-empty string")
    return DatabaseConfig(
        url=url,
        echo=bool(data.get("echo", defaults.echo)),
        pool_size=int(data.get("pool_size", defaults.pool_size)),
        max_overflow=int(data.get("max_overflow", defaults.max_overflow)),
    )


def parse_logging(data: dict[str, Any]) -> LoggingConfig:
    _check_keys("logging", data, {"level"})
    level = str(data.get("level", "INFO")).upper()
    if level not in logging.getLevelNamesMapping():
        raise ValueError(f"logging.level is not a logging level: {level!r}")
    return LoggingConfig(level=level)


def parse_roles(data: dict[str, Any]) -> RolesConfig:
    _check_keys("roles", data, {"aliases"})
    aliases: dict[str, Role] = {}
    for label, target in (data.get("aliases") or {}).items():
        try:
            aliases[str(label).strip().upper()] = Role(str(target).strip().upper())
        except ValueError as exc:
            raise ValueError(
                f"roles.aliases.{label} must name a canonical role, got {target!r}"
            ) from exc
    return RolesConfig(aliases=aliases)


def parse_notifications(data: dict[str, Any]) -> NotificationsConfig:
    _check_keys("notifications", data, {"enabled"})
    return NotificationsConfig(enabled=bool(data.get("enabled", True)))


def parse_config(data: dict[str, Any]) -> PrintflowConfig:
    """
    Parse a ``PrintflowConfig`` from a dict.

    Raises:
        ValueError: if ``name`` is missing or any section is invalid.
    """
    _check_keys("root", data, _ROOT_KEYS)
    if not data.get("name"):
        raise ValueError("Configuration set has no name")
    return PrintflowConfig(
        name=str(data["name"]),
        version=int(data.get("version", 1)),
        description=str(data.get("description", "")),
        database=parse_database(data.get("database") or {}),
        logging=parse_logging(data.get("logging") or {}),
        roles=parse_roles(data.get("roles") or {}),
        notifications=parse_notifications(data.get("notifications") or {}),
    )


def load_config_file(path: Path) -> PrintflowConfig:
    return parse_config(load_yaml_file(path))
