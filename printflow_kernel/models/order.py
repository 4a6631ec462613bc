"""
Module: printflow_kernel.models.order
Responsibility: ORM persistence for print orders, their line items and their
    workflow tasks, plus conversion to and from the frozen domain values.
Architecture position: Kernel > Models.  May import from db/base.py and the
    domain value types it converts to.  MUST NOT import from selectors/ or
    outer layers.

Invariants enforced:
    - At most one task per (order, task_type): UNIQUE constraint
      uq_workflow_task_order_type.
    - Status columns only hold known enum values (CHECK constraints).
    - version >= 0; updated only by the conditional commit in SqlOrderStore.

Failure modes:
    - IntegrityError on a second task of the same type for an order.
    - IntegrityError on an unknown status value.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from printflow_kernel.db.base import IdType, TimestampedBase, UTCDateTime
from printflow_kernel.domain.orders import (
    ItemKind,
    Order,
    OrderItem,
    OrderStatus,
    Task,
    TaskStatus,
    TaskType,
)


def _in_clause(column: str, values) -> str:
    quoted = ", ".join(f"'{v.value}'" for v in values)
    return f"{column} IN ({quoted})"


class PrintOrderModel(TimestampedBase):
    """
    Order header row.

    Contract:
        ``status`` and ``version`` change only through SqlOrderStore.commit,
        which applies a TransitionOutcome with a conditional UPDATE.
    """

    __tablename__ = "print_orders"

    __table_args__ = (
        CheckConstraint(
            _in_clause("status", OrderStatus),
            name="ck_print_orders_valid_status",
        ),
        CheckConstraint("version >= 0", name="ck_print_orders_version"),
        Index("idx_print_orders_status", "status"),
    )

    status: Mapped[str] = mapped_column(String(32), nullable=False)
    property_name: Mapped[str] = mapped_column(String(200), nullable=False)
    zone: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    created_by: Mapped[int | None] = mapped_column(IdType, nullable=True)
    ordered_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    attributes: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    items: Mapped[list["OrderItemModel"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItemModel.position",
        lazy="selectin",
    )

    tasks: Mapped[list["WorkflowTaskModel"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="WorkflowTaskModel.id",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<PrintOrder {self.id} status={self.status} v{self.version}>"

    def to_domain(self) -> Order:
        """Convert ORM row to frozen domain Order."""
        return Order(
            id=self.id,
            status=OrderStatus(self.status),
            property_name=self.property_name,
            zone=self.zone,
            items=tuple(item.to_domain() for item in self.items),
            created_by=self.created_by,
            created_at=self.ordered_at,
            version=self.version,
            attributes=dict(self.attributes or {}),
        )

    @classmethod
    def from_domain(cls, order: Order) -> PrintOrderModel:
        """Create ORM row (with items) from a not-yet-stored domain Order."""
        return cls(
            status=order.status.value,
            property_name=order.property_name,
            zone=order.zone,
            created_by=order.created_by,
            ordered_at=order.created_at,
            version=order.version,
            attributes=dict(order.attributes) or None,
            items=[
                OrderItemModel.from_domain(item, position)
                for position, item in enumerate(order.items)
            ],
        )


class OrderItemModel(TimestampedBase):
    """One line item; ``kind`` selects which columns are meaningful."""

    __tablename__ = "order_items"

    __table_args__ = (
        CheckConstraint(_in_clause("kind", ItemKind), name="ck_order_items_kind"),
        UniqueConstraint("order_id", "position", name="uq_order_item_position"),
    )

    order_id: Mapped[int] = mapped_column(
        IdType, ForeignKey("print_orders.id"), nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    height_cm: Mapped[float | None] = mapped_column(Float, nullable=True)
    width_cm: Mapped[float | None] = mapped_column(Float, nullable=True)
    content: Mapped[list | None] = mapped_column(JSON, nullable=True)
    manuscript_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    logo_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    display_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    logo_file: Mapped[str | None] = mapped_column(String(500), nullable=True)
    facade_photo_file: Mapped[str | None] = mapped_column(String(500), nullable=True)

    order: Mapped[PrintOrderModel] = relationship(back_populates="items")

    def to_domain(self) -> OrderItem:
        return OrderItem(
            kind=ItemKind(self.kind),
            height_cm=self.height_cm,
            width_cm=self.width_cm,
            content=tuple(self.content or ()),
            manuscript_text=self.manuscript_text,
            logo_required=self.logo_required,
            display_name=self.display_name,
            notes=self.notes,
            logo_file=self.logo_file,
            facade_photo_file=self.facade_photo_file,
        )

    @classmethod
    def from_domain(cls, item: OrderItem, position: int) -> OrderItemModel:
        return cls(
            position=position,
            kind=item.kind.value,
            height_cm=item.height_cm,
            width_cm=item.width_cm,
            content=list(item.content) or None,
            manuscript_text=item.manuscript_text,
            logo_required=item.logo_required,
            display_name=item.display_name,
            notes=item.notes,
            logo_file=item.logo_file,
            facade_photo_file=item.facade_photo_file,
        )


class WorkflowTaskModel(TimestampedBase):
    """
    Stage task row.

    Contract:
        One row per (order_id, task_type).  Rows are never deleted; a
        rejected task is reworked in place by the same assignee.
    """

    __tablename__ = "workflow_tasks"

    __table_args__ = (
        UniqueConstraint("order_id", "task_type", name="uq_workflow_task_order_type"),
        CheckConstraint(_in_clause("task_type", TaskType), name="ck_workflow_tasks_type"),
        CheckConstraint(_in_clause("status", TaskStatus), name="ck_workflow_tasks_status"),
        Index("idx_workflow_tasks_assignee_status", "assignee_id", "status"),
    )

    order_id: Mapped[int] = mapped_column(
        IdType, ForeignKey("print_orders.id"), nullable=False,
    )
    task_type: Mapped[str] = mapped_column(String(16), nullable=False)
    assignee_id: Mapped[int | None] = mapped_column(IdType, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    uploaded_file: Mapped[str | None] = mapped_column(String(500), nullable=True)

    order: Mapped[PrintOrderModel] = relationship(back_populates="tasks")

    def __repr__(self) -> str:
        return f"<WorkflowTask {self.id} {self.task_type} status={self.status}>"

    def to_domain(self) -> Task:
        return Task(
            id=self.id,
            order_id=self.order_id,
            task_type=TaskType(self.task_type),
            assignee_id=self.assignee_id,
            status=TaskStatus(self.status),
            uploaded_file=self.uploaded_file,
        )

    @classmethod
    def from_domain(cls, task: Task) -> WorkflowTaskModel:
        return cls(
            order_id=task.order_id,
            task_type=task.task_type.value,
            assignee_id=task.assignee_id,
            status=task.status.value,
            uploaded_file=task.uploaded_file,
        )
