"""
Status change events emitted after a committed transition.

The notification emitter is fire-and-forget; these records are what it
receives.  Severity drives how the front-end renders the toast.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from printflow_kernel.domain.orders import OrderStatus, TaskStatus, TaskType


class Severity(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    ERROR = "error"


_SUCCESS_STATUSES = frozenset({
    OrderStatus.DELIVERY_VALIDATED_FINAL,
    OrderStatus.DONE_IN_STOCK,
})


def severity_for(new_status: OrderStatus, task_status: TaskStatus | None) -> Severity:
    """Rejections are errors, final statuses are successes, the rest is info."""
    if task_status is TaskStatus.REJECTED:
        return Severity.ERROR
    if new_status in _SUCCESS_STATUSES:
        return Severity.SUCCESS
    return Severity.INFO


@dataclass(frozen=True)
class StatusChangeEvent:
    order_id: int
    previous_status: OrderStatus
    new_status: OrderStatus
    action: str
    message: str
    severity: Severity
    occurred_at: datetime
    actor_id: int | None = None
    task_type: TaskType | None = None
    task_status: TaskStatus | None = None

    def to_dict(self) -> dict:
        """Flat payload for transports (websocket, email, logs)."""
        return {
            "order_id": self.order_id,
            "previous_status": self.previous_status.value,
            "new_status": self.new_status.value,
            "action": self.action,
            "message": self.message,
            "severity": self.severity.value,
            "timestamp": self.occurred_at.isoformat(),
            "actor_id": self.actor_id,
            "task_type": self.task_type.value if self.task_type else None,
            "task_status": self.task_status.value if self.task_status else None,
        }
