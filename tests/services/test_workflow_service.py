"""
WorkflowService end to end over the in-memory store.

Covers the caller-side flow: identity resolution, uploads, commits,
notifications and read projections.
"""

import pytest

from printflow_kernel.domain.events import Severity
from printflow_kernel.domain.orders import (
    ObservedStatus,
    OrderItem,
    OrderStatus,
    TaskStatus,
    TaskType,
)
from printflow_kernel.domain.workflow import ActionType, GuardReason
from printflow_kernel.exceptions import (
    CollaboratorMissingError,
    GuardViolationError,
    InvalidOrderError,
    OrderNotFoundError,
    TaskNotFoundError,
    UserNotFoundError,
)
from printflow_services.stores import InMemoryBlobStore, InMemoryOrderStore
from printflow_services.workflow_service import WorkflowService
from tests.conftest import (
    ADMIN_ID,
    COMMERCIAL_ID,
    DESIGNER_ID,
    DRIVER_ID,
    OTHER_DESIGNER_ID,
    PRINTER_ID,
)


def _run_stage(service, order_id, task_type, assignee_id, content=None):
    """Assign, complete and validate one stage; return the task id."""
    task = service.assign_task(order_id, task_type, assignee_id, ADMIN_ID).task
    service.complete_task(task.id, assignee_id, content=content, filename="proof.pdf")
    service.validate_task(task.id, True, ADMIN_ID)
    return task.id


class TestCreateOrder:

    def test_commercial_creates_order(self, created_order):
        assert created_order.id == 1
        assert created_order.status is OrderStatus.CREATED
        assert created_order.created_by == COMMERCIAL_ID
        assert len(created_order.items) == 2

    def test_designer_may_not_create(self, service, sample_items):
        with pytest.raises(GuardViolationError) as exc_info:
            service.create_order(DESIGNER_ID, sample_items, property_name="Villa")

        assert exc_info.value.reason == GuardReason.WRONG_ROLE.value

    def test_malformed_item_is_refused(self, service):
        with pytest.raises(InvalidOrderError) as exc_info:
            service.create_order(
                ADMIN_ID, [OrderItem.panel(0, 80)], property_name="Villa",
            )

        assert exc_info.value.field == "items[0]"

    def test_unknown_actor(self, service, sample_items):
        with pytest.raises(UserNotFoundError):
            service.create_order(999, sample_items, property_name="Villa")


class TestFullWorkflow:

    def test_order_reaches_stock(self, service, created_order, blob_store):
        order_id = created_order.id

        design_id = _run_stage(
            service, order_id, TaskType.DESIGN, DESIGNER_ID, content=b"%PDF-1.7",
        )
        _run_stage(service, order_id, TaskType.PRINT, PRINTER_ID)
        _run_stage(service, order_id, TaskType.DELIVERY, DRIVER_ID)
        outcome = service.move_to_stock(order_id, ADMIN_ID)

        assert outcome.order.status is OrderStatus.DONE_IN_STOCK
        assert outcome.order.version == 10
        order, tasks = service.get_order(order_id)
        assert order.status is OrderStatus.DONE_IN_STOCK
        assert {t.status for t in tasks} == {TaskStatus.VALIDATED}
        design = next(t for t in tasks if t.id == design_id)
        assert blob_store.load(design.uploaded_file) == b"%PDF-1.7"

    def test_rejection_then_rework(self, service, created_order, notifier):
        order_id = created_order.id
        task = service.assign_task(order_id, TaskType.DESIGN, DESIGNER_ID, ADMIN_ID).task
        service.complete_task(task.id, DESIGNER_ID, content=b"v1", filename="v1.pdf")

        rejected = service.validate_task(task.id, False, ADMIN_ID)

        assert rejected.order.status is OrderStatus.DESIGN_IN_PROGRESS
        assert rejected.task.status is TaskStatus.REJECTED
        assert rejected.event.severity is Severity.ERROR
        assert [t.id for t in service.pending_tasks(DESIGNER_ID)] == [task.id]

        service.start_task(task.id, DESIGNER_ID)
        service.complete_task(task.id, DESIGNER_ID, content=b"v2", filename="v2.pdf")
        validated = service.validate_task(task.id, True, ADMIN_ID)

        assert validated.order.status is OrderStatus.PRINT_VALIDATED
        assert service.pending_tasks(DESIGNER_ID) == ()

    def test_committed_task_carries_store_id(self, service, created_order):
        outcome = service.assign_task(
            created_order.id, TaskType.DESIGN, DESIGNER_ID, ADMIN_ID,
        )

        assert outcome.task.id is not None
        assert outcome.tasks == (outcome.task,)


class TestGuardsThroughService:

    def test_unknown_assignee_is_invalid(self, service, created_order):
        with pytest.raises(GuardViolationError) as exc_info:
            service.assign_task(created_order.id, TaskType.DESIGN, 999, ADMIN_ID)

        assert exc_info.value.reason == GuardReason.INVALID_ASSIGNEE.value

    def test_assignee_with_wrong_role_is_invalid(self, service, created_order):
        with pytest.raises(GuardViolationError) as exc_info:
            service.assign_task(created_order.id, TaskType.DESIGN, PRINTER_ID, ADMIN_ID)

        assert exc_info.value.reason == GuardReason.INVALID_ASSIGNEE.value

    def test_other_designer_may_not_complete(self, service, created_order, blob_store):
        task = service.assign_task(
            created_order.id, TaskType.DESIGN, DESIGNER_ID, ADMIN_ID,
        ).task

        with pytest.raises(GuardViolationError) as exc_info:
            service.complete_task(task.id, OTHER_DESIGNER_ID, content=b"x", filename="x.pdf")

        assert exc_info.value.reason == GuardReason.NOT_ASSIGNEE.value

    def test_refused_upload_stores_nothing(self, created_order, authority, clock):
        blobs = InMemoryBlobStore()
        store = InMemoryOrderStore()
        service = WorkflowService(store, authority, blob_store=blobs, clock=clock)
        order = service.create_order(COMMERCIAL_ID, created_order.items, "Villa")
        task = service.assign_task(order.id, TaskType.DESIGN, DESIGNER_ID, ADMIN_ID).task

        with pytest.raises(GuardViolationError):
            service.complete_task(task.id, OTHER_DESIGNER_ID, content=b"x", filename="x.pdf")

        assert blobs._blobs == {}

    def test_design_needs_a_file(self, service, created_order):
        task = service.assign_task(
            created_order.id, TaskType.DESIGN, DESIGNER_ID, ADMIN_ID,
        ).task

        with pytest.raises(GuardViolationError) as exc_info:
            service.complete_task(task.id, DESIGNER_ID)

        assert exc_info.value.reason == GuardReason.MISSING_ARTIFACT.value

    def test_upload_without_blob_store(self, memory_store, authority, created_order):
        service = WorkflowService(memory_store, authority)
        task = service.assign_task(
            created_order.id, TaskType.DESIGN, DESIGNER_ID, ADMIN_ID,
        ).task

        with pytest.raises(CollaboratorMissingError) as exc_info:
            service.complete_task(task.id, DESIGNER_ID, content=b"x")

        assert exc_info.value.code == "COLLABORATOR_MISSING"
        assert exc_info.value.collaborator == "blob store"
        _, tasks = service.get_order(created_order.id)
        assert tasks[0].status is TaskStatus.ASSIGNED

    def test_move_to_stock_too_early(self, service, created_order):
        with pytest.raises(GuardViolationError) as exc_info:
            service.move_to_stock(created_order.id, ADMIN_ID)

        assert exc_info.value.reason == GuardReason.WRONG_STATUS.value
        assert exc_info.value.order_status == OrderStatus.CREATED.value

    def test_unknown_ids(self, service):
        with pytest.raises(OrderNotFoundError):
            service.move_to_stock(404, ADMIN_ID)
        with pytest.raises(TaskNotFoundError):
            service.validate_task(404, True, ADMIN_ID)

    def test_refused_action_changes_nothing(self, service, created_order):
        with pytest.raises(GuardViolationError):
            service.assign_task(created_order.id, TaskType.PRINT, PRINTER_ID, ADMIN_ID)

        order, tasks = service.get_order(created_order.id)
        assert order == created_order
        assert tasks == ()


class TestNotifications:

    def test_one_event_per_commit(self, service, created_order, notifier):
        order_id = created_order.id
        _run_stage(service, order_id, TaskType.DESIGN, DESIGNER_ID, content=b"pdf")

        events = notifier.for_order(order_id)

        assert [e.action for e in events] == ["ASSIGN", "COMPLETE", "VALIDATE"]
        assert [e.new_status for e in events] == [
            OrderStatus.DESIGN_IN_PROGRESS,
            OrderStatus.DESIGN_IN_PROGRESS,
            OrderStatus.PRINT_VALIDATED,
        ]
        assert all(e.severity is Severity.INFO for e in events)
        assert events[0].message.startswith(f"Order #{order_id}:")

    def test_final_statuses_are_successes(self, service, created_order, notifier):
        order_id = created_order.id
        _run_stage(service, order_id, TaskType.DESIGN, DESIGNER_ID, content=b"pdf")
        _run_stage(service, order_id, TaskType.PRINT, PRINTER_ID)
        _run_stage(service, order_id, TaskType.DELIVERY, DRIVER_ID)
        service.move_to_stock(order_id, ADMIN_ID)

        last_two = notifier.for_order(order_id)[-2:]

        assert [e.new_status for e in last_two] == [
            OrderStatus.DELIVERY_VALIDATED_FINAL,
            OrderStatus.DONE_IN_STOCK,
        ]
        assert {e.severity for e in last_two} == {Severity.SUCCESS}

    def test_events_are_stamped_by_the_clock(self, service, created_order, notifier, clock):
        clock.advance(90)

        service.assign_task(created_order.id, TaskType.DESIGN, DESIGNER_ID, ADMIN_ID)

        event = notifier.events[-1]
        assert event.occurred_at == clock.now()
        assert event.to_dict()["timestamp"] == "2024-01-01T12:01:30+00:00"

    def test_refused_action_emits_nothing(self, service, created_order, notifier):
        with pytest.raises(GuardViolationError):
            service.move_to_stock(created_order.id, ADMIN_ID)

        assert notifier.events == []

    def test_failing_sink_does_not_fail_the_request(
        self, memory_store, authority, created_order, captured_logs,
    ):
        class _Broken:
            def emit(self, event):
                raise ConnectionError("socket closed")

        service = WorkflowService(memory_store, authority, notifier=_Broken())

        outcome = service.assign_task(
            created_order.id, TaskType.DESIGN, DESIGNER_ID, ADMIN_ID,
        )

        assert outcome.order.status is OrderStatus.DESIGN_IN_PROGRESS
        failures = [r for r in captured_logs() if r["message"] == "notification_failed"]
        assert len(failures) == 1
        assert failures[0]["level"] == "WARNING"
        assert failures[0]["exc_type"] == "ConnectionError"

    def test_disabled_notifications(self, memory_store, authority, notifier, created_order):
        service = WorkflowService(
            memory_store, authority, notifier=notifier, notifications_enabled=False,
        )

        service.assign_task(created_order.id, TaskType.DESIGN, DESIGNER_ID, ADMIN_ID)

        assert notifier.events == []


class TestReadSide:

    def test_available_actions_per_actor(self, service, created_order):
        admin = service.available_actions(created_order.id, ADMIN_ID)
        designer = service.available_actions(created_order.id, DESIGNER_ID)

        assert {(a.action_type, a.task_type) for a in admin} == {
            (ActionType.ASSIGN, TaskType.DESIGN),
        }
        assert admin[0].requires_assignee
        assert designer == ()

    def test_observed_status_awaiting_validation(self, service, created_order):
        task = service.assign_task(
            created_order.id, TaskType.DESIGN, DESIGNER_ID, ADMIN_ID,
        ).task
        service.complete_task(task.id, DESIGNER_ID, content=b"pdf")

        assert service.observed_status(created_order.id) is (
            ObservedStatus.DESIGN_DONE_AWAITING_VALIDATION
        )

    def test_dashboard_and_kanban(self, service, created_order, sample_items):
        second = service.create_order(ADMIN_ID, sample_items, property_name="Le Mas")
        service.assign_task(second.id, TaskType.DESIGN, DESIGNER_ID, ADMIN_ID)

        stats = service.dashboard_stats()
        columns = service.kanban()

        assert (stats.new_orders, stats.in_progress, stats.completed) == (1, 1, 0)
        assert [o.id for o in columns[OrderStatus.CREATED]] == [created_order.id]
        assert [o.id for o in columns[OrderStatus.DESIGN_IN_PROGRESS]] == [second.id]

    def test_tasks_for_user_keeps_history(self, service, created_order):
        _run_stage(service, created_order.id, TaskType.DESIGN, DESIGNER_ID, content=b"pdf")

        rows = service.tasks_for_user(DESIGNER_ID)

        assert len(rows) == 1
        assert rows[0].task.status is TaskStatus.VALIDATED
        assert rows[0].order.status is OrderStatus.PRINT_VALIDATED
        assert service.pending_tasks(DESIGNER_ID) == ()

    def test_eligible_assignees(self, service):
        candidates = [ADMIN_ID, DESIGNER_ID, PRINTER_ID, OTHER_DESIGNER_ID, 999]

        assert service.eligible_assignees(TaskType.DESIGN, candidates) == (
            DESIGNER_ID, OTHER_DESIGNER_ID,
        )


class TestLogging:

    def test_transition_trace_and_commit_logged(self, service, created_order, captured_logs):
        service.assign_task(created_order.id, TaskType.DESIGN, DESIGNER_ID, ADMIN_ID)

        logs = captured_logs()
        traces = [r for r in logs if r["message"] == "workflow_transition"]
        commits = [r for r in logs if r["message"] == "transition_committed"]

        assert len(traces) == 1
        assert traces[0]["outcome"] == "success"
        assert traces[0]["to_status"] == OrderStatus.DESIGN_IN_PROGRESS.value
        assert len(commits) == 1
        assert commits[0]["correlation_id"] == traces[0]["correlation_id"]
        assert commits[0]["version"] == 1

    def test_guard_failure_logged(self, service, created_order, captured_logs):
        with pytest.raises(GuardViolationError):
            service.move_to_stock(created_order.id, COMMERCIAL_ID)

        logs = captured_logs()
        trace = next(r for r in logs if r["message"] == "workflow_transition")
        violation = next(r for r in logs if r["message"] == "guard_violation")
        assert trace["outcome"] == "guard_failed"
        assert trace["reason"] == GuardReason.WRONG_ROLE.value
        assert violation["level"] == "WARNING"
