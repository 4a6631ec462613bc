"""
Module: printflow_kernel.selectors.order_selector
Responsibility: Read-side queries over print orders and workflow tasks:
    single order lookup, filtered listings, per-assignee task lists and
    status counts computed in SQL.
Architecture position: Kernel > Selectors.  Imports models/ and returns
    frozen domain values.

Failure modes:
    - None raised here; missing rows come back as None / empty results and
      the store decides which NotFound error to raise.
"""

from __future__ import annotations

from sqlalchemy import func, select

from printflow_kernel.domain.orders import (
    ORDER_STATUS_SEQUENCE,
    Order,
    OrderStatus,
    Task,
    TaskStatus,
)
from printflow_kernel.models.order import PrintOrderModel, WorkflowTaskModel
from printflow_kernel.selectors.base import BaseSelector


class OrderSelector(BaseSelector[PrintOrderModel]):
    """Read-only queries for orders and their tasks."""

    def get(self, order_id: int) -> tuple[Order, tuple[Task, ...]] | None:
        row = self.session.get(PrintOrderModel, order_id)
        if row is None:
            return None
        return row.to_domain(), tuple(t.to_domain() for t in row.tasks)

    def list_with_tasks(self) -> list[tuple[Order, tuple[Task, ...]]]:
        stmt = select(PrintOrderModel).order_by(PrintOrderModel.id)
        return [
            (row.to_domain(), tuple(t.to_domain() for t in row.tasks))
            for row in self.session.scalars(stmt)
        ]

    def find_task(self, task_id: int) -> Task | None:
        row = self.session.get(WorkflowTaskModel, task_id)
        return row.to_domain() if row is not None else None

    def tasks_for_assignee(
        self,
        user_id: int,
        statuses: frozenset[TaskStatus] | None = None,
    ) -> list[Task]:
        stmt = (
            select(WorkflowTaskModel)
            .where(WorkflowTaskModel.assignee_id == user_id)
            .order_by(WorkflowTaskModel.id)
        )
        if statuses is not None:
            stmt = stmt.where(
                WorkflowTaskModel.status.in_(sorted(s.value for s in statuses))
            )
        return [row.to_domain() for row in self.session.scalars(stmt)]

    def count_orders_by_status(self) -> dict[OrderStatus, int]:
        counts = {status: 0 for status in ORDER_STATUS_SEQUENCE}
        stmt = select(PrintOrderModel.status, func.count()).group_by(
            PrintOrderModel.status
        )
        for status, count in self.session.execute(stmt):
            counts[OrderStatus(status)] = count
        return counts
