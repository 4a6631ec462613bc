"""
printflow_services -- Package init and public API.

Responsibility:
    Stateful coordination over the pure workflow engine: stores, blob
    storage, notifications and the WorkflowService that ties them together.

Architecture position:
    Services -- stateful orchestration over printflow_kernel.

    Dependency direction (enforced by tests/architecture/test_kernel_boundary.py):
        printflow_services/ -> printflow_kernel/   (allowed)
        printflow_kernel/   -> printflow_services/ (FORBIDDEN)
"""

from printflow_services.sql_store import SqlOrderStore
from printflow_services.stores import (
    BlobStore,
    InMemoryBlobStore,
    InMemoryOrderStore,
    LoggingNotificationSink,
    NotificationSink,
    OrderStore,
    RecordingNotificationSink,
    StaticRoleAuthority,
)
from printflow_services.workflow_service import WorkflowService

__all__ = [
    "BlobStore",
    "InMemoryBlobStore",
    "InMemoryOrderStore",
    "LoggingNotificationSink",
    "NotificationSink",
    "OrderStore",
    "RecordingNotificationSink",
    "SqlOrderStore",
    "StaticRoleAuthority",
    "WorkflowService",
]
