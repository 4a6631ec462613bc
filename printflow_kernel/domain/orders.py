"""
Order and task domain types (``printflow_kernel.domain.orders``).

Responsibility
--------------
Pure value objects for production orders, their line items, and the
per-stage tasks attached to them, plus the status vocabularies of both
state machines.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``models/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* ``ORDER_STATUS_SEQUENCE`` is the single ordering of persisted order
  statuses; ``DONE_IN_STOCK`` is terminal.
* An ``OrderItem`` is a tagged variant: PANEL items carry dimensions and
  content tags, ONEWAY items carry manuscript text.  ``validate_item``
  rejects items whose fields do not match their kind.
* All records are frozen; state changes produce new instances via
  ``dataclasses.replace`` inside the workflow engine only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from printflow_kernel.exceptions import InvalidOrderError


# =========================================================================
# Status vocabularies
# =========================================================================


class OrderStatus(str, Enum):
    """Persisted order statuses, in workflow order."""

    CREATED = "CREATED"
    DESIGN_IN_PROGRESS = "DESIGN_IN_PROGRESS"
    PRINT_VALIDATED = "PRINT_VALIDATED"
    PRINT_IN_PROGRESS = "PRINT_IN_PROGRESS"
    DELIVERY_VALIDATED = "DELIVERY_VALIDATED"
    DELIVERY_IN_PROGRESS = "DELIVERY_IN_PROGRESS"
    DELIVERY_VALIDATED_FINAL = "DELIVERY_VALIDATED_FINAL"
    DONE_IN_STOCK = "DONE_IN_STOCK"


ORDER_STATUS_SEQUENCE: tuple[OrderStatus, ...] = tuple(OrderStatus)

TERMINAL_ORDER_STATUSES: frozenset[OrderStatus] = frozenset({
    OrderStatus.DONE_IN_STOCK,
})


class ObservedStatus(str, Enum):
    """Order status as seen by readers.

    Refines the persisted status with an "awaiting validation" phase per
    stage, reported while the stage's task is DONE but not yet validated.
    """

    CREATED = "CREATED"
    DESIGN_IN_PROGRESS = "DESIGN_IN_PROGRESS"
    DESIGN_DONE_AWAITING_VALIDATION = "DESIGN_DONE_AWAITING_VALIDATION"
    PRINT_VALIDATED = "PRINT_VALIDATED"
    PRINT_IN_PROGRESS = "PRINT_IN_PROGRESS"
    PRINT_DONE_AWAITING_VALIDATION = "PRINT_DONE_AWAITING_VALIDATION"
    DELIVERY_VALIDATED = "DELIVERY_VALIDATED"
    DELIVERY_IN_PROGRESS = "DELIVERY_IN_PROGRESS"
    DELIVERY_DONE_AWAITING_VALIDATION = "DELIVERY_DONE_AWAITING_VALIDATION"
    DELIVERY_VALIDATED_FINAL = "DELIVERY_VALIDATED_FINAL"
    DONE_IN_STOCK = "DONE_IN_STOCK"


OBSERVED_STATUS_SEQUENCE: tuple[ObservedStatus, ...] = tuple(ObservedStatus)


class TaskType(str, Enum):
    """Workflow stages; one task per stage per order."""

    DESIGN = "DESIGN"
    PRINT = "PRINT"
    DELIVERY = "DELIVERY"


class TaskStatus(str, Enum):
    """Task lifecycle states."""

    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"
    VALIDATED = "VALIDATED"
    REJECTED = "REJECTED"


# Statuses from which the assignee may (re)work the task.
WORKABLE_TASK_STATUSES: frozenset[TaskStatus] = frozenset({
    TaskStatus.ASSIGNED,
    TaskStatus.IN_PROGRESS,
    TaskStatus.REJECTED,
})

# Statuses counted as "pending" for a user (badges, task lists).
PENDING_TASK_STATUSES: frozenset[TaskStatus] = frozenset({
    TaskStatus.ASSIGNED,
    TaskStatus.REJECTED,
})


# =========================================================================
# Line items
# =========================================================================


class ItemKind(str, Enum):
    """Line item categories."""

    PANEL = "PANEL"
    ONEWAY = "ONEWAY"


@dataclass(frozen=True)
class OrderItem:
    """A single line item of an order (tagged variant on ``kind``).

    PANEL: ``height_cm``, ``width_cm`` and ``content`` tags.
    ONEWAY: ``manuscript_text``.
    The remaining fields are shared by both kinds.
    """

    kind: ItemKind
    height_cm: float | None = None
    width_cm: float | None = None
    content: tuple[str, ...] = ()
    manuscript_text: str | None = None
    logo_required: bool = False
    display_name: str = ""
    notes: str = ""
    logo_file: str | None = None
    facade_photo_file: str | None = None

    @classmethod
    def panel(
        cls,
        height_cm: float,
        width_cm: float,
        content: tuple[str, ...] | list[str] = (),
        **common: object,
    ) -> OrderItem:
        return cls(
            kind=ItemKind.PANEL,
            height_cm=height_cm,
            width_cm=width_cm,
            content=tuple(content),
            **common,
        )

    @classmethod
    def oneway(cls, manuscript_text: str, **common: object) -> OrderItem:
        return cls(kind=ItemKind.ONEWAY, manuscript_text=manuscript_text, **common)


def validate_item(item: OrderItem, position: int = 0) -> None:
    """Raise ``InvalidOrderError`` unless the item's fields match its kind."""
    where = f"items[{position}]"
    if item.kind is ItemKind.PANEL:
        if item.height_cm is None or item.width_cm is None:
            raise InvalidOrderError(where, "panel items need height_cm and width_cm")
        if item.height_cm <= 0 or item.width_cm <= 0:
            raise InvalidOrderError(where, "panel dimensions must be positive")
        if item.manuscript_text is not None:
            raise InvalidOrderError(where, "panel items carry no manuscript text")
    elif item.kind is ItemKind.ONEWAY:
        if not (item.manuscript_text or "").strip():
            raise InvalidOrderError(where, "oneway items need manuscript_text")
        if item.height_cm is not None or item.width_cm is not None or item.content:
            raise InvalidOrderError(where, "oneway items carry no panel dimensions")
    else:
        raise InvalidOrderError(where, f"unknown item kind {item.kind!r}")


# =========================================================================
# Tasks and orders
# =========================================================================


@dataclass(frozen=True)
class Task:
    """One unit of work within an order, scoped to one stage.

    ``id`` is None until the store persists the task.  ``order_id`` is a
    weak back-reference; the task does not own the order.
    """

    id: int | None
    order_id: int
    task_type: TaskType
    assignee_id: int | None = None
    status: TaskStatus = TaskStatus.ASSIGNED
    uploaded_file: str | None = None


@dataclass(frozen=True)
class Order:
    """A customer job moving through design, print and delivery.

    ``id`` is None until the store creates the order.  ``version`` is the
    optimistic-concurrency counter: every applied transition produces an
    order whose version is one higher.
    """

    id: int | None
    status: OrderStatus
    property_name: str = ""
    zone: str = ""
    items: tuple[OrderItem, ...] = ()
    created_by: int | None = None
    created_at: datetime | None = None
    version: int = 0
    # Free-form descriptive attributes (customer, support, ...).
    attributes: dict[str, str] = field(default_factory=dict, compare=False, hash=False)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_ORDER_STATUSES


def task_of_type(tasks: tuple[Task, ...] | list[Task], task_type: TaskType) -> Task | None:
    """Return the task of the given stage, or None."""
    for task in tasks:
        if task.task_type is task_type:
            return task
    return None
