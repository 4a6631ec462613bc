"""
printflow_services.sql_store -- SQLAlchemy-backed OrderStore.

Responsibility:
    Persists orders, items and tasks through the kernel ORM models and
    applies TransitionOutcomes with an optimistic version check.

Architecture position:
    Services layer.  The only place that holds sessions for the workflow;
    reads go through ``OrderSelector``.

Invariants enforced:
    - commit() issues ``UPDATE print_orders ... WHERE id = ? AND version = ?``
      first; a zero row count aborts the whole transaction.
    - Order row and task row change in the same session_scope().

Failure modes:
    - ConcurrentModificationError -- the stored version moved on.
    - OrderNotFoundError / TaskNotFoundError -- unknown ids.
    - PersistenceFailureError -- any SQLAlchemyError (including the
      UNIQUE(order_id, task_type) violation); nothing is applied.
"""

from __future__ import annotations

from dataclasses import replace

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from printflow_kernel.db.engine import session_scope
from printflow_kernel.domain.orders import Order, Task
from printflow_kernel.domain.workflow import TransitionOutcome
from printflow_kernel.exceptions import (
    ConcurrentModificationError,
    OrderNotFoundError,
    PersistenceFailureError,
    TaskNotFoundError,
)
from printflow_kernel.logging_config import get_logger
from printflow_kernel.models.order import PrintOrderModel, WorkflowTaskModel
from printflow_kernel.selectors.order_selector import OrderSelector

logger = get_logger("services.sql_store")


class SqlOrderStore:
    """OrderStore over a SQLAlchemy session factory.

    Each call runs in its own transaction; sessions are never shared
    across calls or threads.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._factory = session_factory

    def create(self, order: Order) -> Order:
        try:
            with session_scope(self._factory) as session:
                row = PrintOrderModel.from_domain(order)
                session.add(row)
                session.flush()
                stored = row.to_domain()
        except SQLAlchemyError as exc:
            raise PersistenceFailureError("create", str(exc)) from exc
        logger.info("order_created", extra={"order_id": stored.id})
        return stored

    def get(self, order_id: int) -> tuple[Order, tuple[Task, ...]]:
        try:
            with session_scope(self._factory) as session:
                found = OrderSelector(session).get(order_id)
        except SQLAlchemyError as exc:
            raise PersistenceFailureError("get", str(exc), order_id=order_id) from exc
        if found is None:
            raise OrderNotFoundError(order_id)
        return found

    def find_task(self, task_id: int) -> Task:
        try:
            with session_scope(self._factory) as session:
                task = OrderSelector(session).find_task(task_id)
        except SQLAlchemyError as exc:
            raise PersistenceFailureError("find_task", str(exc)) from exc
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def list(self) -> list[tuple[Order, tuple[Task, ...]]]:
        try:
            with session_scope(self._factory) as session:
                return OrderSelector(session).list_with_tasks()
        except SQLAlchemyError as exc:
            raise PersistenceFailureError("list", str(exc)) from exc

    def commit(self, outcome: TransitionOutcome) -> TransitionOutcome:
        order = outcome.order
        try:
            with session_scope(self._factory) as session:
                result = session.execute(
                    update(PrintOrderModel)
                    .where(
                        PrintOrderModel.id == order.id,
                        PrintOrderModel.version == outcome.base_version,
                    )
                    .values(status=order.status.value, version=order.version)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    actual = session.scalar(
                        select(PrintOrderModel.version).where(
                            PrintOrderModel.id == order.id
                        )
                    )
                    if actual is None:
                        raise OrderNotFoundError(order.id)
                    raise ConcurrentModificationError(
                        order.id, outcome.base_version, actual,
                    )

                task = outcome.task
                if task is not None:
                    if task.id is None:
                        task_row = WorkflowTaskModel.from_domain(task)
                        session.add(task_row)
                    else:
                        task_row = session.get(WorkflowTaskModel, task.id)
                        if task_row is None:
                            raise TaskNotFoundError(task.id)
                        task_row.status = task.status.value
                        task_row.assignee_id = task.assignee_id
                        task_row.uploaded_file = task.uploaded_file
                    session.flush()
                    task = task_row.to_domain()

                stored_order, stored_tasks = OrderSelector(session).get(order.id)
        except SQLAlchemyError as exc:
            logger.error(
                "order_commit_failed",
                extra={"order_id": order.id, "error": str(exc)},
            )
            raise PersistenceFailureError("commit", str(exc), order_id=order.id) from exc

        return replace(outcome, order=stored_order, tasks=stored_tasks, task=task)
