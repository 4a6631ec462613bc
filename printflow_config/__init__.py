"""
printflow_config -- single public entrypoint for runtime configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration
    files directly.

Architecture position:
    Configuration -- YAML-driven, validated at load time.  This package
    sits above ``printflow_kernel`` and below ``printflow_services``.  The
    kernel MUST NEVER import from ``printflow_config``.

Failure modes:
    - ``FileNotFoundError`` -- no configuration set with the requested name.
    - ``ValueError`` -- schema validation failures.
"""

from __future__ import annotations

from pathlib import Path

from printflow_config.loader import load_config_file
from printflow_config.schema import PrintflowConfig
from printflow_kernel.logging_config import get_logger

_logger = get_logger("config")

# Default configuration sets directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"


def get_active_config(
    name: str = "default",
    config_dir: Path | None = None,
) -> PrintflowConfig:
    """The ONLY public configuration entrypoint.

    Args:
        name: Configuration set name; loads ``<config_dir>/<name>.yaml``.
        config_dir: Override path to the configuration sets directory.
            Defaults to printflow_config/sets/.

    Returns:
        The parsed, frozen configuration.

    Raises:
        FileNotFoundError: If no configuration set with that name exists.
        ValueError: If the configuration fails validation.
    """
    sets_dir = Path(config_dir) if config_dir is not None else _DEFAULT_CONFIG_DIR
    path = sets_dir / f"{name}.yaml"
    if not path.is_file():
        raise FileNotFoundError(f"Configuration set not found: {path}")

    config = load_config_file(path)
    if config.name != name:
        raise ValueError(
            f"Configuration file {path.name} declares name {config.name!r}"
        )

    _logger.info(
        "PRINTFLOW_CONFIG_TRACE",
        extra={
            "trace_type": "PRINTFLOW_CONFIG_TRACE",
            "config_name": config.name,
            "config_version": config.version,
            "database_dialect": config.database.url.split(":", 1)[0],
            "role_alias_count": len(config.roles.aliases),
            "notifications_enabled": config.notifications.enabled,
        },
    )
    return config


__all__ = [
    "PrintflowConfig",
    "get_active_config",
]
