"""
Pytest fixtures for the printflow test suite.

Provides:
- Structured logging setup and log capture
- Deterministic clock, role authority and well-known actors
- In-memory and SQLite-backed stores and WorkflowService instances

SQL tests run against a SQLite file per test (tmp_path).  Set DATABASE_URL to
a PostgreSQL URL to run them against a real server instead.
"""

import json
import logging
import os
from io import StringIO

import pytest

from printflow_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from printflow_kernel.domain.clock import DeterministicClock
from printflow_kernel.domain.orders import OrderItem
from printflow_kernel.domain.roles import Role
from printflow_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from printflow_services.sql_store import SqlOrderStore
from printflow_services.stores import (
    InMemoryBlobStore,
    InMemoryOrderStore,
    RecordingNotificationSink,
    StaticRoleAuthority,
)
from printflow_services.workflow_service import WorkflowService

# Well-known users
ADMIN_ID = 1
COMMERCIAL_ID = 2
DESIGNER_ID = 3
PRINTER_ID = 4
DRIVER_ID = 5
OTHER_DESIGNER_ID = 6
ADMIN_DESIGNER_ID = 7

ROLE_MAP = {
    ADMIN_ID: ["ADMINISTRATEUR"],
    COMMERCIAL_ID: [Role.COMMERCIAL],
    DESIGNER_ID: [Role.DESIGNER],
    PRINTER_ID: ["IMPRIMEUR"],
    DRIVER_ID: ["LOGISTIQUE"],
    OTHER_DESIGNER_ID: [Role.DESIGNER],
    ADMIN_DESIGNER_ID: [Role.ADMIN, Role.DESIGNER],
}


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture printflow logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, service):
            service.move_to_stock(order_id, ADMIN_ID)
            logs = captured_logs()
            assert any(r["message"] == "workflow_transition" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("printflow")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Domain fixtures
# =============================================================================


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock()


@pytest.fixture
def authority() -> StaticRoleAuthority:
    return StaticRoleAuthority(ROLE_MAP)


@pytest.fixture
def sample_items() -> list[OrderItem]:
    return [
        OrderItem.panel(120, 80, ["logo", "name"], display_name="Villa Mimosa"),
        OrderItem.oneway("A vendre - 06 00 00 00 00", notes="window 2"),
    ]


# =============================================================================
# Stores and services
# =============================================================================


@pytest.fixture
def memory_store() -> InMemoryOrderStore:
    return InMemoryOrderStore()


@pytest.fixture
def blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def notifier() -> RecordingNotificationSink:
    return RecordingNotificationSink()


@pytest.fixture
def service(memory_store, authority, blob_store, notifier, clock) -> WorkflowService:
    return WorkflowService(
        store=memory_store,
        authority=authority,
        blob_store=blob_store,
        notifier=notifier,
        clock=clock,
    )


@pytest.fixture
def database_url(tmp_path) -> str:
    return os.environ.get("DATABASE_URL") or f"sqlite:///{tmp_path / 'printflow.db'}"


@pytest.fixture
def sql_session_factory(database_url):
    """Fresh schema per test; engine disposed afterwards."""
    init_engine_from_url(database_url)
    drop_tables()
    create_tables()
    yield get_session_factory()
    drop_tables()
    reset_engine()


@pytest.fixture
def sql_store(sql_session_factory) -> SqlOrderStore:
    return SqlOrderStore(sql_session_factory)


@pytest.fixture
def sql_service(sql_store, authority, blob_store, notifier, clock) -> WorkflowService:
    return WorkflowService(
        store=sql_store,
        authority=authority,
        blob_store=blob_store,
        notifier=notifier,
        clock=clock,
    )


@pytest.fixture
def created_order(service, sample_items):
    """An order in status CREATED, created by the commercial user."""
    return service.create_order(
        COMMERCIAL_ID, sample_items, property_name="Villa Mimosa", zone="Nord",
    )
