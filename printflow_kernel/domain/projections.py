"""
Read-only projections over orders and tasks.

Dashboard counters, kanban columns and per-user task lists.  None of these
decide anything: transitions live in ``printflow_kernel.domain.engine``.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from printflow_kernel.domain.orders import (
    ORDER_STATUS_SEQUENCE,
    Order,
    OrderStatus,
    Task,
    TaskStatus,
    TaskType,
)
from printflow_kernel.domain.roles import RoleAuthority
from printflow_kernel.domain.workflow import STAGE_ROLES
from printflow_kernel.exceptions import UserNotFoundError


@dataclass(frozen=True)
class DashboardStats:
    """Headline counters plus a zero-filled per-status breakdown."""
    new_orders: int
    in_progress: int
    completed: int
    breakdown: dict[OrderStatus, int]

    @property
    def total(self) -> int:
        return sum(self.breakdown.values())


@dataclass(frozen=True)
class UserTask:
    """A task paired with the order it belongs to (task list rows)."""
    task: Task
    order: Order


def compute_dashboard_stats(orders: Iterable[Order]) -> DashboardStats:
    breakdown = {status: 0 for status in ORDER_STATUS_SEQUENCE}
    for order in orders:
        breakdown[order.status] += 1
    new = breakdown[OrderStatus.CREATED]
    completed = breakdown[OrderStatus.DONE_IN_STOCK]
    return DashboardStats(
        new_orders=new,
        in_progress=sum(breakdown.values()) - new - completed,
        completed=completed,
        breakdown=breakdown,
    )


def group_orders_by_status(orders: Iterable[Order]) -> dict[OrderStatus, tuple[Order, ...]]:
    """Kanban columns in workflow order; every status has a (maybe empty) column."""
    columns: dict[OrderStatus, list[Order]] = {s: [] for s in ORDER_STATUS_SEQUENCE}
    for order in orders:
        columns[order.status].append(order)
    return {status: tuple(col) for status, col in columns.items()}


def tasks_for_user(
    orders_with_tasks: Iterable[tuple[Order, Iterable[Task]]],
    user_id: int,
) -> tuple[UserTask, ...]:
    """Every task assigned to ``user_id`` whatever its status, with its order."""
    rows = []
    for order, tasks in orders_with_tasks:
        for task in tasks:
            if task.assignee_id == user_id:
                rows.append(UserTask(task=task, order=order))
    return tuple(rows)


def count_tasks_by_status(tasks: Iterable[Task]) -> dict[TaskStatus, int]:
    counts = {status: 0 for status in TaskStatus}
    for task in tasks:
        counts[task.status] += 1
    return counts


def eligible_assignees(
    user_ids: Iterable[int],
    task_type: TaskType,
    authority: RoleAuthority,
) -> tuple[int, ...]:
    """Users holding the role required for ``task_type`` (assignment pickers).

    Unknown users are skipped rather than failing the whole listing.
    """
    required = STAGE_ROLES[task_type]
    eligible = []
    for user_id in user_ids:
        try:
            roles = authority.roles_of(user_id)
        except UserNotFoundError:
            continue
        if required in roles:
            eligible.append(user_id)
    return tuple(eligible)
