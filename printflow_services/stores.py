"""
printflow_services.stores -- Collaborator protocols and in-process adapters.

Responsibility:
    Declares the ports the workflow service talks to (order store, blob
    store, notification sink) and provides in-process implementations
    for tests and local development, plus a static role authority.

Architecture position:
    Services layer.  May import from printflow_kernel (domain, exceptions,
    logging).  The kernel never imports from here.

Invariants enforced:
    - OrderStore.commit applies an order and its changed task atomically,
      and only if the stored order version equals the outcome's
      ``base_version``; otherwise nothing is applied.
    - Task ids are assigned by the store; a task is never stored twice for
      the same (order, task_type).
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Mapping
from dataclasses import replace
from typing import Protocol, runtime_checkable
from uuid import uuid4

from printflow_kernel.domain.events import StatusChangeEvent
from printflow_kernel.domain.orders import Order, Task
from printflow_kernel.domain.roles import Role, parse_roles
from printflow_kernel.domain.workflow import TransitionOutcome
from printflow_kernel.exceptions import (
    ConcurrentModificationError,
    OrderNotFoundError,
    PersistenceFailureError,
    TaskNotFoundError,
    UserNotFoundError,
)
from printflow_kernel.logging_config import get_logger

logger = get_logger("services.stores")


# ---------------------------------------------------------------------------
# Ports
# ---------------------------------------------------------------------------


@runtime_checkable
class OrderStore(Protocol):
    def create(self, order: Order) -> Order:
        """Persist a new order; return it with its assigned id."""
        ...

    def get(self, order_id: int) -> tuple[Order, tuple[Task, ...]]:
        """Return the order and its tasks.  Raises OrderNotFoundError."""
        ...

    def find_task(self, task_id: int) -> Task:
        """Raises TaskNotFoundError."""
        ...

    def list(self) -> list[tuple[Order, tuple[Task, ...]]]:
        ...

    def commit(self, outcome: TransitionOutcome) -> TransitionOutcome:
        """Atomically persist a transition; return it with stored ids.

        Raises ConcurrentModificationError when the order moved on since
        it was read, PersistenceFailureError when the write failed.
        """
        ...


@runtime_checkable
class BlobStore(Protocol):
    def store(self, content: bytes, filename: str) -> str:
        """Store the content and return an opaque reference."""
        ...


@runtime_checkable
class NotificationSink(Protocol):
    def emit(self, event: StatusChangeEvent) -> None:
        ...


# ---------------------------------------------------------------------------
# In-memory order store
# ---------------------------------------------------------------------------


class InMemoryOrderStore:
    """Thread-safe, version-checked order store kept in process memory."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._orders: dict[int, Order] = {}
        self._tasks: dict[int, dict[int, Task]] = {}
        self._next_order_id = 1
        self._next_task_id = 1

    def create(self, order: Order) -> Order:
        with self._lock:
            stored = replace(order, id=self._next_order_id)
            self._next_order_id += 1
            self._orders[stored.id] = stored
            self._tasks[stored.id] = {}
        logger.info("order_created", extra={"order_id": stored.id})
        return stored

    def get(self, order_id: int) -> tuple[Order, tuple[Task, ...]]:
        with self._lock:
            order = self._orders.get(order_id)
            if order is None:
                raise OrderNotFoundError(order_id)
            return order, tuple(self._tasks[order_id].values())

    def find_task(self, task_id: int) -> Task:
        with self._lock:
            for tasks in self._tasks.values():
                if task_id in tasks:
                    return tasks[task_id]
        raise TaskNotFoundError(task_id)

    def list(self) -> list[tuple[Order, tuple[Task, ...]]]:
        with self._lock:
            return [
                (order, tuple(self._tasks[order_id].values()))
                for order_id, order in sorted(self._orders.items())
            ]

    def commit(self, outcome: TransitionOutcome) -> TransitionOutcome:
        order = outcome.order
        with self._lock:
            current = self._orders.get(order.id)
            if current is None:
                raise OrderNotFoundError(order.id)
            if current.version != outcome.base_version:
                raise ConcurrentModificationError(
                    order.id, outcome.base_version, current.version,
                )

            tasks = self._tasks[order.id]
            task = outcome.task
            if task is not None:
                if task.id is None:
                    if any(t.task_type is task.task_type for t in tasks.values()):
                        raise PersistenceFailureError(
                            "commit",
                            f"duplicate {task.task_type.value} task",
                            order_id=order.id,
                        )
                    task = replace(task, id=self._next_task_id)
                    self._next_task_id += 1
                elif task.id not in tasks:
                    raise TaskNotFoundError(task.id)
                tasks[task.id] = task

            self._orders[order.id] = order
            stored_tasks = tuple(tasks.values())

        return replace(outcome, task=task, tasks=stored_tasks)


# ---------------------------------------------------------------------------
# Blob store
# ---------------------------------------------------------------------------


class InMemoryBlobStore:
    """Keeps uploaded files in a dict keyed by ``blob://<uuid>/<filename>``."""

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def store(self, content: bytes, filename: str) -> str:
        reference = f"blob://{uuid4().hex}/{filename}"
        with self._lock:
            self._blobs[reference] = bytes(content)
        logger.info(
            "blob_stored",
            extra={"blob_ref": reference, "size_bytes": len(content)},
        )
        return reference

    def load(self, reference: str) -> bytes:
        with self._lock:
            return self._blobs[reference]

    def __contains__(self, reference: str) -> bool:
        return reference in self._blobs


# ---------------------------------------------------------------------------
# Notification sinks
# ---------------------------------------------------------------------------


class LoggingNotificationSink:
    """Writes each event as a structured log record."""

    def emit(self, event: StatusChangeEvent) -> None:
        payload = event.to_dict()
        # LogRecord reserves "message"
        payload["notification"] = payload.pop("message")
        logger.info("status_change_notification", extra=payload)


class RecordingNotificationSink:
    """Keeps every emitted event, in order."""

    def __init__(self) -> None:
        self.events: list[StatusChangeEvent] = []
        self._lock = threading.Lock()

    def emit(self, event: StatusChangeEvent) -> None:
        with self._lock:
            self.events.append(event)

    def for_order(self, order_id: int) -> list[StatusChangeEvent]:
        return [e for e in self.events if e.order_id == order_id]

    def clear(self) -> None:
        self.events.clear()


# ---------------------------------------------------------------------------
# Role authority
# ---------------------------------------------------------------------------


class StaticRoleAuthority:
    """RoleAuthority backed by a dict of user id -> role labels.

    Labels go through the alias table, so legacy names such as
    ``ADMINISTRATEUR`` are accepted.  Can be replaced with a database- or
    directory-backed implementation.
    """

    def __init__(
        self,
        role_map: Mapping[int, Iterable[Role | str]] | None = None,
        aliases: Mapping[str, Role] | None = None,
    ) -> None:
        self._aliases = aliases
        self._role_map: dict[int, frozenset[Role]] = {
            user_id: parse_roles(labels, aliases)
            for user_id, labels in (role_map or {}).items()
        }

    def roles_of(self, user_id: int) -> frozenset[Role]:
        try:
            return self._role_map[user_id]
        except KeyError:
            raise UserNotFoundError(user_id) from None

    def grant(self, user_id: int, *labels: Role | str) -> None:
        current = self._role_map.get(user_id, frozenset())
        self._role_map[user_id] = current | parse_roles(labels, self._aliases)

    def known_users(self) -> tuple[int, ...]:
        return tuple(sorted(self._role_map))
