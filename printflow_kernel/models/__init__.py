"""ORM models for the printflow kernel."""

from printflow_kernel.models.order import (
    OrderItemModel,
    PrintOrderModel,
    WorkflowTaskModel,
)

__all__ = [
    "PrintOrderModel",
    "OrderItemModel",
    "WorkflowTaskModel",
]
