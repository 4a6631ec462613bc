"""
printflow_services.workflow_service -- Caller-side workflow coordinator.

Responsibility:
    Turns user requests (assign, start, complete, validate, reject, move to
    stock) into engine calls.  For each request it reads the order and its
    tasks from the store, resolves the actor's roles, asks the engine for
    the next state, stores any uploaded file, commits, and notifies.
    Thin coordinator -- every transition decision is delegated to
    ``printflow_kernel.domain.engine``.

Architecture position:
    Services layer.  May import from printflow_kernel.  Receives its
    collaborators (store, role authority, blob store, notification sink,
    clock) by constructor injection.

Invariants enforced:
    - One request = one read-modify-commit of one order.
    - Files are stored only after the guard has accepted the completion.
    - Notifications go out after a successful commit and never fail the
      request.

Failure modes:
    - GuardViolationError, OrderNotFoundError, TaskNotFoundError,
      UserNotFoundError, ConcurrentModificationError,
      PersistenceFailureError, InvalidOrderError,
      CollaboratorMissingError -- all propagate.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import uuid4

from printflow_kernel.domain.clock import Clock, SystemClock
from printflow_kernel.domain.engine import (
    apply_transition,
    check_action,
    derive_pending_tasks_for_user,
    list_available_actions,
    new_order,
    observed_status,
)
from printflow_kernel.domain.events import StatusChangeEvent
from printflow_kernel.domain.orders import (
    ObservedStatus,
    Order,
    OrderItem,
    OrderStatus,
    Task,
    TaskType,
)
from printflow_kernel.domain.projections import (
    DashboardStats,
    UserTask,
    compute_dashboard_stats,
    eligible_assignees,
    group_orders_by_status,
    tasks_for_user,
)
from printflow_kernel.domain.roles import Actor, Role, RoleAuthority
from printflow_kernel.domain.workflow import (
    Action,
    AvailableAction,
    GuardDecision,
    TransitionOutcome,
)
from printflow_kernel.exceptions import (
    CollaboratorMissingError,
    GuardViolationError,
    UserNotFoundError,
)
from printflow_kernel.logging_config import LogContext, get_logger
from printflow_services.stores import BlobStore, NotificationSink, OrderStore

logger = get_logger("services.workflow")

# Placeholder reference used to pre-check a completion before the upload.
_PENDING_UPLOAD = "pending-upload"


class WorkflowService:
    """Coordinates store, role authority, engine, blob store and notifier."""

    def __init__(
        self,
        store: OrderStore,
        authority: RoleAuthority,
        blob_store: BlobStore | None = None,
        notifier: NotificationSink | None = None,
        clock: Clock | None = None,
        notifications_enabled: bool = True,
    ) -> None:
        self._store = store
        self._authority = authority
        self._blob_store = blob_store
        self._notifier = notifier
        self._clock = clock or SystemClock()
        self._notifications_enabled = notifications_enabled

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def actor(self, user_id: int) -> Actor:
        """Resolve a user id into an Actor.  Raises UserNotFoundError."""
        return Actor(user_id=user_id, roles=self._authority.roles_of(user_id))

    def _assignee_roles(self, user_id: int) -> frozenset[Role]:
        # Unknown assignees have no roles; the guard reports INVALID_ASSIGNEE.
        try:
            return self._authority.roles_of(user_id)
        except UserNotFoundError:
            return frozenset()

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def create_order(
        self,
        actor_id: int,
        items: Iterable[OrderItem],
        property_name: str,
        zone: str = "",
        attributes: dict[str, str] | None = None,
    ) -> Order:
        """Create an order in status CREATED (COMMERCIAL or ADMIN only)."""
        with LogContext.bind(actor_id=actor_id, action="CREATE"):
            order = new_order(
                self.actor(actor_id),
                items,
                property_name,
                zone=zone,
                clock=self._clock,
                attributes=attributes,
            )
            return self._store.create(order)

    def get_order(self, order_id: int) -> tuple[Order, tuple[Task, ...]]:
        return self._store.get(order_id)

    def observed_status(self, order_id: int) -> ObservedStatus:
        order, tasks = self._store.get(order_id)
        return observed_status(order, tasks)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def available_actions(self, order_id: int, actor_id: int) -> tuple[AvailableAction, ...]:
        order, tasks = self._store.get(order_id)
        return list_available_actions(order, tasks, self.actor(actor_id))

    def check(self, order_id: int, action: Action, actor_id: int) -> GuardDecision:
        order, tasks = self._store.get(order_id)
        return check_action(order, tasks, action, self.actor(actor_id))

    def perform(self, order_id: int, action: Action, actor_id: int) -> TransitionOutcome:
        """Apply one action to one order and commit it.

        Returns the committed outcome, carrying store-assigned task ids.
        """
        with LogContext.bind(
            correlation_id=uuid4().hex,
            actor_id=actor_id,
            order_id=order_id,
            action=action.action_type.value,
        ):
            order, tasks = self._store.get(order_id)
            outcome = apply_transition(
                order, tasks, action, self.actor(actor_id), clock=self._clock,
            )
            committed = self._store.commit(outcome)
            logger.info(
                "transition_committed",
                extra={
                    "from_status": outcome.previous_status.value,
                    "to_status": committed.order.status.value,
                    "version": committed.order.version,
                },
            )
            self._notify(committed.event)
            return committed

    def assign_task(
        self,
        order_id: int,
        task_type: TaskType,
        assignee_id: int,
        actor_id: int,
    ) -> TransitionOutcome:
        action = Action.assign(task_type, assignee_id, self._assignee_roles(assignee_id))
        return self.perform(order_id, action, actor_id)

    def start_task(self, task_id: int, actor_id: int) -> TransitionOutcome:
        task = self._store.find_task(task_id)
        return self.perform(task.order_id, Action.start(task.task_type), actor_id)

    def complete_task(
        self,
        task_id: int,
        actor_id: int,
        content: bytes | None = None,
        filename: str | None = None,
    ) -> TransitionOutcome:
        """Mark a task DONE, storing ``content`` first when given.

        The upload happens only once the guard accepts the completion, so a
        refused request leaves no orphan blob behind.
        """
        task = self._store.find_task(task_id)
        file_ref = None
        if content is not None:
            if self._blob_store is None:
                raise CollaboratorMissingError("blob store", "COMPLETE with upload")
            order, tasks = self._store.get(task.order_id)
            decision = check_action(
                order,
                tasks,
                Action.complete(task.task_type, file_ref=_PENDING_UPLOAD),
                self.actor(actor_id),
            )
            if not decision.allowed:
                raise GuardViolationError(
                    decision.reason.value,
                    decision.detail,
                    order_id=order.id,
                    action=f"COMPLETE {task.task_type.value}",
                    order_status=order.status.value,
                )
            file_ref = self._blob_store.store(content, filename or f"task-{task_id}")
        return self.perform(
            task.order_id, Action.complete(task.task_type, file_ref=file_ref), actor_id,
        )

    def validate_task(self, task_id: int, approved: bool, actor_id: int) -> TransitionOutcome:
        """Admin decision on a DONE task: validate when approved, else reject."""
        task = self._store.find_task(task_id)
        if approved:
            action = Action.validate(task.task_type)
        else:
            action = Action.reject(task.task_type)
        return self.perform(task.order_id, action, actor_id)

    def move_to_stock(self, order_id: int, actor_id: int) -> TransitionOutcome:
        return self.perform(order_id, Action.move_to_stock(), actor_id)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def pending_tasks(self, user_id: int) -> tuple[Task, ...]:
        all_tasks = [t for _, tasks in self._store.list() for t in tasks]
        return derive_pending_tasks_for_user(all_tasks, user_id)

    def tasks_for_user(self, user_id: int) -> tuple[UserTask, ...]:
        return tasks_for_user(self._store.list(), user_id)

    def dashboard_stats(self) -> DashboardStats:
        return compute_dashboard_stats(order for order, _ in self._store.list())

    def kanban(self) -> dict[OrderStatus, tuple[Order, ...]]:
        return group_orders_by_status(order for order, _ in self._store.list())

    def eligible_assignees(self, task_type: TaskType, candidates: Iterable[int]) -> tuple[int, ...]:
        return eligible_assignees(candidates, task_type, self._authority)

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def _notify(self, event: StatusChangeEvent) -> None:
        if not self._notifications_enabled or self._notifier is None:
            return
        try:
            self._notifier.emit(event)
        except Exception:  # noqa: BLE001
            logger.warning(
                "notification_failed",
                extra={"order_id": event.order_id},
                exc_info=True,
            )
