"""
Workflow engine (``printflow_kernel.domain.engine``).

Responsibility
--------------
The only place where order and task transitions are decided.  Given an
order, its tasks, an actor and a requested action, the engine:

* lists what the actor may do right now (``list_available_actions``),
* explains why an action is or is not allowed (``check_action``),
* computes the next order and task state (``apply_transition``),
* derives the "pending for user" task set and the observed status.

Architecture position
---------------------
**Kernel domain layer** -- pure functions over frozen values.  The engine
never reads from or writes to a store; callers load the order and tasks,
call the engine, and commit the returned ``TransitionOutcome`` themselves.

Invariants enforced
-------------------
* ``apply_transition`` always runs the same guard as ``check_action``;
  there is no unguarded code path to a new state.
* Guard order: role, order status, task presence / assignee, task status,
  then action parameters (assignee role, uploaded file).
* A failed guard raises ``GuardViolationError`` and returns nothing; a
  transition is never partially applied.
* ``list_available_actions`` evaluates candidate actions through the
  guard itself, so the UI can never offer an action the guard refuses
  (parameters supplied at request time excepted).

Failure modes
-------------
* ``GuardViolationError`` -- any guard check failed.  ``reason`` carries
  the ``GuardReason`` value.
* ``InvalidOrderError`` -- ``new_order`` called with malformed input.
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Sequence
from dataclasses import replace
from datetime import datetime

from printflow_kernel.domain.clock import Clock, SystemClock
from printflow_kernel.domain.events import StatusChangeEvent, severity_for
from printflow_kernel.domain.orders import (
    ObservedStatus,
    Order,
    OrderItem,
    OrderStatus,
    PENDING_TASK_STATUSES,
    Task,
    TaskStatus,
    TaskType,
    task_of_type,
    validate_item,
)
from printflow_kernel.domain.roles import ORDER_CREATOR_ROLES, Actor
from printflow_kernel.domain.workflow import (
    STAGE_ROLES,
    TRANSITIONS,
    Action,
    ActionType,
    AvailableAction,
    GuardDecision,
    GuardReason,
    Transition,
    TransitionOutcome,
    find_transition,
    stage_for_status,
)
from printflow_kernel.exceptions import GuardViolationError, InvalidOrderError
from printflow_kernel.logging_config import get_logger

logger = get_logger("domain.engine")

OUTCOME_SUCCESS = "success"
OUTCOME_GUARD_FAILED = "guard_failed"


def _emit_workflow_trace(
    order: Order,
    action: Action,
    actor: Actor,
    outcome: str,
    duration_ms: float,
    reason: str | None = None,
    to_status: OrderStatus | None = None,
    task: Task | None = None,
) -> None:
    """Emit one structured record per transition attempt."""
    record = {
        "order_id": order.id,
        "action": action.action_type.value,
        "task_type": action.task_type.value if action.task_type else None,
        "actor_id": actor.user_id,
        "actor_roles": sorted(r.value for r in actor.roles),
        "from_status": order.status.value,
        "outcome": outcome,
        "duration_ms": round(duration_ms, 3),
    }
    if reason is not None:
        record["reason"] = reason
    if to_status is not None:
        record["to_status"] = to_status.value
    if task is not None:
        record["task_id"] = task.id
        record["task_status"] = task.status.value
    logger.info("workflow_transition", extra=record)


# =========================================================================
# Guard
# =========================================================================


def _describe(action: Action) -> str:
    if action.task_type is None:
        return action.action_type.value
    return f"{action.action_type.value} {action.task_type.value}"


def _evaluate(
    order: Order,
    tasks: Sequence[Task],
    action: Action,
    actor: Actor,
    transition: Transition | None,
    *,
    check_parameters: bool = True,
) -> GuardDecision:
    if transition is None:
        return GuardDecision.deny(
            GuardReason.UNKNOWN_ACTION,
            f"no transition defined for {_describe(action)}",
        )

    # 1. Role
    if not actor.has_role(transition.required_role):
        return GuardDecision.deny(
            GuardReason.WRONG_ROLE,
            f"{_describe(action)} requires role {transition.required_role.value}",
        )

    # 2. Order status
    if order.is_terminal:
        return GuardDecision.deny(
            GuardReason.TERMINAL_STATE,
            f"order is {order.status.value}; no further actions",
        )
    if order.status is not transition.from_status:
        return GuardDecision.deny(
            GuardReason.WRONG_STATUS,
            f"{_describe(action)} requires order status "
            f"{transition.from_status.value}, found {order.status.value}",
        )

    task = task_of_type(tasks, transition.task_type) if transition.task_type else None

    # 3. Task presence / assignee
    if transition.from_task_statuses is None:
        if transition.task_type is None:
            return GuardDecision.allow()
        if task is not None:
            return GuardDecision.deny(
                GuardReason.TASK_EXISTS,
                f"{transition.task_type.value} task already assigned to "
                f"user {task.assignee_id}",
            )
        if check_parameters:
            required = STAGE_ROLES[transition.task_type]
            if action.assignee_id is None:
                return GuardDecision.deny(
                    GuardReason.INVALID_ASSIGNEE, "an assignee is required",
                )
            if required not in action.assignee_roles:
                return GuardDecision.deny(
                    GuardReason.INVALID_ASSIGNEE,
                    f"user {action.assignee_id} does not hold role {required.value}",
                )
        return GuardDecision.allow()

    if task is None:
        return GuardDecision.deny(
            GuardReason.TASK_MISSING,
            f"order has no {transition.task_type.value} task",
        )
    if transition.assignee_only and task.assignee_id != actor.user_id:
        return GuardDecision.deny(
            GuardReason.NOT_ASSIGNEE,
            f"task {task.id} is assigned to user {task.assignee_id}",
        )

    # 4. Task status
    if task.status not in transition.from_task_statuses:
        return GuardDecision.deny(
            GuardReason.INVALID_TASK_STATE,
            f"{_describe(action)} not allowed while task is {task.status.value}",
        )

    if check_parameters and transition.requires_file and not action.file_ref:
        return GuardDecision.deny(
            GuardReason.MISSING_ARTIFACT,
            f"{transition.task_type.value} completion requires an uploaded file",
        )
    return GuardDecision.allow()


def check_action(
    order: Order,
    tasks: Sequence[Task],
    action: Action,
    actor: Actor,
) -> GuardDecision:
    """Evaluate the guard for ``action`` without applying it."""
    transition = find_transition(action.action_type, action.task_type)
    return _evaluate(order, tasks, action, actor, transition)


def list_available_actions(
    order: Order,
    tasks: Sequence[Task],
    actor: Actor,
) -> tuple[AvailableAction, ...]:
    """Every action the actor could perform on the order right now.

    Parameters supplied at request time (assignee, uploaded file) are not
    checked here; the corresponding flags tell the caller to collect them.
    """
    available: list[AvailableAction] = []
    for transition in TRANSITIONS:
        probe = Action(transition.action_type, transition.task_type)
        decision = _evaluate(
            order, tasks, probe, actor, transition, check_parameters=False,
        )
        if not decision.allowed:
            continue
        task = task_of_type(tasks, transition.task_type) if transition.task_type else None
        available.append(AvailableAction(
            action_type=transition.action_type,
            task_type=transition.task_type,
            task_id=task.id if task is not None else None,
            requires_assignee=transition.action_type is ActionType.ASSIGN,
            requires_file=transition.requires_file,
        ))
    return tuple(available)


# =========================================================================
# Transition application
# =========================================================================


_MESSAGES: dict[ActionType, str] = {
    ActionType.ASSIGN: "{task} task assigned to user {assignee}",
    ActionType.START: "{task} task started",
    ActionType.COMPLETE: "{task} task completed, awaiting validation",
    ActionType.VALIDATE: "{task} task validated",
    ActionType.REJECT: "{task} task rejected, rework required",
    ActionType.MOVE_TO_STOCK: "moved to stock",
}


def _message(order: Order, action: Action, task: Task | None) -> str:
    text = _MESSAGES[action.action_type].format(
        task=task.task_type.value.capitalize() if task else "",
        assignee=task.assignee_id if task else "",
    )
    return f"Order #{order.id}: {text}"


def apply_transition(
    order: Order,
    tasks: Sequence[Task],
    action: Action,
    actor: Actor,
    clock: Clock | None = None,
) -> TransitionOutcome:
    """Guard and apply ``action``; return the next state without persisting it.

    Raises:
        GuardViolationError: If any guard check fails.
    """
    t0 = time.monotonic()
    tasks = tuple(tasks)
    transition = find_transition(action.action_type, action.task_type)
    decision = _evaluate(order, tasks, action, actor, transition)

    if not decision.allowed:
        _emit_workflow_trace(
            order, action, actor, OUTCOME_GUARD_FAILED,
            (time.monotonic() - t0) * 1000, reason=decision.reason.value,
        )
        logger.warning(
            "guard_violation",
            extra={
                "order_id": order.id,
                "reason": decision.reason.value,
                "detail": decision.detail,
            },
        )
        raise GuardViolationError(
            decision.reason.value,
            decision.detail,
            order_id=order.id,
            action=_describe(action),
            order_status=order.status.value,
        )

    changed: Task | None = None
    new_tasks = tasks
    if transition.task_type is not None:
        existing = task_of_type(tasks, transition.task_type)
        if existing is None:
            changed = Task(
                id=None,
                order_id=order.id,
                task_type=transition.task_type,
                assignee_id=action.assignee_id,
                status=transition.to_task_status,
            )
            new_tasks = tasks + (changed,)
        else:
            uploaded = existing.uploaded_file
            if action.action_type is ActionType.COMPLETE and action.file_ref:
                uploaded = action.file_ref
            changed = replace(
                existing, status=transition.to_task_status, uploaded_file=uploaded,
            )
            new_tasks = tuple(changed if t is existing else t for t in tasks)

    new_status = transition.to_status or order.status
    updated = replace(order, status=new_status, version=order.version + 1)

    event = StatusChangeEvent(
        order_id=order.id,
        previous_status=order.status,
        new_status=new_status,
        action=action.action_type.value,
        message=_message(order, action, changed),
        severity=severity_for(new_status, changed.status if changed else None),
        occurred_at=(clock or SystemClock()).now(),
        actor_id=actor.user_id,
        task_type=changed.task_type if changed else None,
        task_status=changed.status if changed else None,
    )

    _emit_workflow_trace(
        order, action, actor, OUTCOME_SUCCESS,
        (time.monotonic() - t0) * 1000, to_status=new_status, task=changed,
    )
    return TransitionOutcome(
        order=updated,
        tasks=new_tasks,
        task=changed,
        transition=transition,
        event=event,
        previous_status=order.status,
        base_version=order.version,
    )


# =========================================================================
# Derivations
# =========================================================================


def derive_pending_tasks_for_user(tasks: Iterable[Task], user_id: int) -> tuple[Task, ...]:
    """Tasks waiting on ``user_id``: assigned to them and ASSIGNED or REJECTED."""
    return tuple(
        t for t in tasks
        if t.assignee_id == user_id and t.status in PENDING_TASK_STATUSES
    )


_AWAITING: dict[TaskType, ObservedStatus] = {
    TaskType.DESIGN: ObservedStatus.DESIGN_DONE_AWAITING_VALIDATION,
    TaskType.PRINT: ObservedStatus.PRINT_DONE_AWAITING_VALIDATION,
    TaskType.DELIVERY: ObservedStatus.DELIVERY_DONE_AWAITING_VALIDATION,
}


def observed_status(order: Order, tasks: Sequence[Task]) -> ObservedStatus:
    """Persisted status, refined with the "awaiting validation" phase."""
    stage = stage_for_status(order.status)
    if stage is not None:
        task = task_of_type(tasks, stage.task_type)
        if task is not None and task.status is TaskStatus.DONE:
            return _AWAITING[stage.task_type]
    return ObservedStatus(order.status.value)


# =========================================================================
# Creation
# =========================================================================


def new_order(
    actor: Actor,
    items: Iterable[OrderItem],
    property_name: str,
    zone: str = "",
    clock: Clock | None = None,
    attributes: dict[str, str] | None = None,
) -> Order:
    """Build a CREATED order on behalf of a COMMERCIAL or ADMIN actor.

    The returned order has no id; the store assigns one on create.

    Raises:
        GuardViolationError: If the actor may not create orders.
        InvalidOrderError: If the property name or items are malformed.
    """
    if not actor.has_any_role(ORDER_CREATOR_ROLES):
        raise GuardViolationError(
            GuardReason.WRONG_ROLE.value,
            "creating an order requires role ADMIN or COMMERCIAL",
            action="CREATE",
        )
    if not property_name or not property_name.strip():
        raise InvalidOrderError("property_name", "must not be empty")
    items = tuple(items)
    if not items:
        raise InvalidOrderError("items", "an order needs at least one item")
    for position, item in enumerate(items):
        validate_item(item, position)

    now: datetime = (clock or SystemClock()).now()
    order = Order(
        id=None,
        status=OrderStatus.CREATED,
        property_name=property_name.strip(),
        zone=zone,
        items=items,
        created_by=actor.user_id,
        created_at=now,
        version=0,
        attributes=dict(attributes or {}),
    )
    logger.info(
        "order_built",
        extra={"created_by": actor.user_id, "item_count": len(items)},
    )
    return order
