"""
printflow_services.bootstrap -- Wire a WorkflowService from configuration.

All service wiring lives here; no service constructs its own collaborators.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from printflow_config.schema import PrintflowConfig
from printflow_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
)
from printflow_kernel.domain.clock import Clock
from printflow_kernel.domain.roles import Role
from printflow_kernel.logging_config import configure_logging, get_logger
from printflow_services.sql_store import SqlOrderStore
from printflow_services.stores import (
    BlobStore,
    InMemoryBlobStore,
    LoggingNotificationSink,
    NotificationSink,
    StaticRoleAuthority,
)
from printflow_services.workflow_service import WorkflowService

logger = get_logger("services.bootstrap")


def build_role_authority(
    config: PrintflowConfig,
    role_map: Mapping[int, Iterable[Role | str]],
) -> StaticRoleAuthority:
    """Static authority that accepts the configured legacy role labels."""
    aliases = config.roles.aliases or None
    return StaticRoleAuthority(role_map, aliases=aliases)


def build_workflow_service(
    config: PrintflowConfig,
    authority: StaticRoleAuthority,
    *,
    blob_store: BlobStore | None = None,
    notifier: NotificationSink | None = None,
    clock: Clock | None = None,
) -> WorkflowService:
    """Initialize logging and the database, then return a SQL-backed service."""
    configure_logging(level=config.logging.level)
    init_engine_from_url(
        config.database.url,
        echo=config.database.echo,
        pool_size=config.database.pool_size,
        max_overflow=config.database.max_overflow,
    )
    create_tables()

    service = WorkflowService(
        store=SqlOrderStore(get_session_factory()),
        authority=authority,
        blob_store=blob_store or InMemoryBlobStore(),
        notifier=notifier or LoggingNotificationSink(),
        clock=clock,
        notifications_enabled=config.notifications.enabled,
    )
    logger.info(
        "workflow_service_ready",
        extra={"config_name": config.name, "config_version": config.version},
    )
    return service
