"""
Workflow definition types (``printflow_kernel.domain.workflow``).

Responsibility
--------------
Declares the production workflow as data: the three stages, the actions
callers may request, and the transition table that says, for each
(action, stage) pair, who may fire it, from which order status, from which
task status, and what the order and task become.  The engine in
``printflow_kernel.domain.engine`` is the only evaluator of this table.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``models/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Each (action_type, task_type) pair appears at most once in
  ``TRANSITIONS``; lookups are unambiguous.
* Every validate row has a paired reject row on the same stage, and a
  reject row never changes the order status.
* Stage statuses follow ``ORDER_STATUS_SEQUENCE``: a stage is assigned
  from the status preceding its active status and validated into the
  status following it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from printflow_kernel.domain.orders import (
    Order,
    OrderStatus,
    Task,
    TaskStatus,
    TaskType,
    WORKABLE_TASK_STATUSES,
)
from printflow_kernel.domain.roles import Role

if TYPE_CHECKING:
    from printflow_kernel.domain.events import StatusChangeEvent


class ActionType(str, Enum):
    """Operations a caller may request on an order."""

    ASSIGN = "ASSIGN"
    START = "START"
    COMPLETE = "COMPLETE"
    VALIDATE = "VALIDATE"
    REJECT = "REJECT"
    MOVE_TO_STOCK = "MOVE_TO_STOCK"


class GuardReason(str, Enum):
    """Why a guard refused an action."""

    WRONG_ROLE = "WRONG_ROLE"
    WRONG_STATUS = "WRONG_STATUS"
    NOT_ASSIGNEE = "NOT_ASSIGNEE"
    TASK_EXISTS = "TASK_EXISTS"
    TASK_MISSING = "TASK_MISSING"
    INVALID_TASK_STATE = "INVALID_TASK_STATE"
    INVALID_ASSIGNEE = "INVALID_ASSIGNEE"
    MISSING_ARTIFACT = "MISSING_ARTIFACT"
    TERMINAL_STATE = "TERMINAL_STATE"
    UNKNOWN_ACTION = "UNKNOWN_ACTION"


# =========================================================================
# Stages
# =========================================================================


@dataclass(frozen=True)
class Stage:
    """One production stage and the order statuses that frame it.

    Contract: frozen.  ``assign_from`` is the order status in which the
    stage's task may be created, ``active_status`` the status while the
    task is worked on, ``validated_status`` the status after admin
    validation.
    """
    task_type: TaskType
    role: Role
    assign_from: OrderStatus
    active_status: OrderStatus
    validated_status: OrderStatus
    requires_file: bool = False


STAGES: tuple[Stage, ...] = (
    Stage(
        task_type=TaskType.DESIGN,
        role=Role.DESIGNER,
        assign_from=OrderStatus.CREATED,
        active_status=OrderStatus.DESIGN_IN_PROGRESS,
        validated_status=OrderStatus.PRINT_VALIDATED,
        requires_file=True,
    ),
    Stage(
        task_type=TaskType.PRINT,
        role=Role.IMPRIMEUR,
        assign_from=OrderStatus.PRINT_VALIDATED,
        active_status=OrderStatus.PRINT_IN_PROGRESS,
        validated_status=OrderStatus.DELIVERY_VALIDATED,
    ),
    Stage(
        task_type=TaskType.DELIVERY,
        role=Role.LOGISTIQUE,
        assign_from=OrderStatus.DELIVERY_VALIDATED,
        active_status=OrderStatus.DELIVERY_IN_PROGRESS,
        validated_status=OrderStatus.DELIVERY_VALIDATED_FINAL,
    ),
)

# Which role an assignee of each task type must hold.
STAGE_ROLES: dict[TaskType, Role] = {s.task_type: s.role for s in STAGES}


def stage_for_status(status: OrderStatus) -> Stage | None:
    """Return the stage whose task is being worked on in ``status``."""
    for stage in STAGES:
        if stage.active_status is status:
            return stage
    return None


# =========================================================================
# Transition table
# =========================================================================


@dataclass(frozen=True)
class Transition:
    """A row of the transition table.

    Contract: frozen.
    ``task_type`` is None only for order-level actions (move to stock).
    ``from_task_statuses`` is None when the row requires the stage task to
    be absent (assignment).  ``to_status`` is None when the order status is
    left unchanged.  ``assignee_only=True`` means the actor must hold
    ``required_role`` *and* be the task's assignee.
    """
    action_type: ActionType
    task_type: TaskType | None
    required_role: Role
    from_status: OrderStatus
    to_status: OrderStatus | None
    from_task_statuses: frozenset[TaskStatus] | None = None
    to_task_status: TaskStatus | None = None
    assignee_only: bool = False
    requires_file: bool = False

    @property
    def key(self) -> tuple[ActionType, TaskType | None]:
        return (self.action_type, self.task_type)


def _stage_transitions(stage: Stage) -> tuple[Transition, ...]:
    done = frozenset({TaskStatus.DONE})
    return (
        Transition(
            action_type=ActionType.ASSIGN,
            task_type=stage.task_type,
            required_role=Role.ADMIN,
            from_status=stage.assign_from,
            to_status=stage.active_status,
            to_task_status=TaskStatus.ASSIGNED,
        ),
        Transition(
            action_type=ActionType.START,
            task_type=stage.task_type,
            required_role=stage.role,
            from_status=stage.active_status,
            to_status=None,
            from_task_statuses=frozenset({TaskStatus.ASSIGNED, TaskStatus.REJECTED}),
            to_task_status=TaskStatus.IN_PROGRESS,
            assignee_only=True,
        ),
        Transition(
            action_type=ActionType.COMPLETE,
            task_type=stage.task_type,
            required_role=stage.role,
            from_status=stage.active_status,
            to_status=None,
            from_task_statuses=WORKABLE_TASK_STATUSES,
            to_task_status=TaskStatus.DONE,
            assignee_only=True,
            requires_file=stage.requires_file,
        ),
        Transition(
            action_type=ActionType.VALIDATE,
            task_type=stage.task_type,
            required_role=Role.ADMIN,
            from_status=stage.active_status,
            to_status=stage.validated_status,
            from_task_statuses=done,
            to_task_status=TaskStatus.VALIDATED,
        ),
        Transition(
            action_type=ActionType.REJECT,
            task_type=stage.task_type,
            required_role=Role.ADMIN,
            from_status=stage.active_status,
            to_status=None,
            from_task_statuses=done,
            to_task_status=TaskStatus.REJECTED,
        ),
    )


TRANSITIONS: tuple[Transition, ...] = tuple(
    t for stage in STAGES for t in _stage_transitions(stage)
) + (
    Transition(
        action_type=ActionType.MOVE_TO_STOCK,
        task_type=None,
        required_role=Role.ADMIN,
        from_status=OrderStatus.DELIVERY_VALIDATED_FINAL,
        to_status=OrderStatus.DONE_IN_STOCK,
    ),
)

TRANSITION_BY_KEY: dict[tuple[ActionType, TaskType | None], Transition] = {
    t.key: t for t in TRANSITIONS
}


def find_transition(action_type: ActionType, task_type: TaskType | None) -> Transition | None:
    return TRANSITION_BY_KEY.get((action_type, task_type))


# =========================================================================
# Requests and results
# =========================================================================


@dataclass(frozen=True)
class Action:
    """A requested workflow action.

    ``assignee_id`` and ``assignee_roles`` are used by ASSIGN only; the
    caller resolves the assignee's roles before asking the engine.
    ``file_ref`` is the opaque blob reference attached on COMPLETE.
    """
    action_type: ActionType
    task_type: TaskType | None = None
    assignee_id: int | None = None
    assignee_roles: frozenset[Role] = frozenset()
    file_ref: str | None = None

    @classmethod
    def assign(cls, task_type: TaskType, assignee_id: int, assignee_roles: frozenset[Role]) -> Action:
        return cls(ActionType.ASSIGN, task_type, assignee_id=assignee_id, assignee_roles=assignee_roles)

    @classmethod
    def start(cls, task_type: TaskType) -> Action:
        return cls(ActionType.START, task_type)

    @classmethod
    def complete(cls, task_type: TaskType, file_ref: str | None = None) -> Action:
        return cls(ActionType.COMPLETE, task_type, file_ref=file_ref)

    @classmethod
    def validate(cls, task_type: TaskType) -> Action:
        return cls(ActionType.VALIDATE, task_type)

    @classmethod
    def reject(cls, task_type: TaskType) -> Action:
        return cls(ActionType.REJECT, task_type)

    @classmethod
    def move_to_stock(cls) -> Action:
        return cls(ActionType.MOVE_TO_STOCK)


@dataclass(frozen=True)
class AvailableAction:
    """An action the actor may perform right now (for rendering buttons)."""
    action_type: ActionType
    task_type: TaskType | None
    task_id: int | None = None
    requires_assignee: bool = False
    requires_file: bool = False


@dataclass(frozen=True)
class GuardDecision:
    """Result of evaluating the guard for one action."""
    allowed: bool
    reason: GuardReason | None = None
    detail: str = ""

    @classmethod
    def allow(cls) -> GuardDecision:
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: GuardReason, detail: str) -> GuardDecision:
        return cls(allowed=False, reason=reason, detail=detail)


@dataclass(frozen=True)
class TransitionOutcome:
    """What a successful transition produced.  Nothing is persisted yet.

    ``order`` carries ``version = previous.version + 1``; stores use
    ``base_version`` for their optimistic check.  ``task`` is the created
    or updated task (None for order-level actions) and ``tasks`` is the
    full task list after the transition.
    """
    order: Order
    tasks: tuple[Task, ...]
    task: Task | None
    transition: Transition
    event: StatusChangeEvent
    previous_status: OrderStatus
    base_version: int

    @property
    def status_changed(self) -> bool:
        return self.order.status is not self.previous_status
