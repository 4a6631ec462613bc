"""
Pure domain layer.

This module contains value objects and the workflow engine
with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Services or configuration

All domain objects are immutable.  Time enters only through an injected Clock.
"""

from printflow_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from printflow_kernel.domain.engine import (
    apply_transition,
    check_action,
    derive_pending_tasks_for_user,
    list_available_actions,
    new_order,
    observed_status,
)
from printflow_kernel.domain.events import Severity, StatusChangeEvent
from printflow_kernel.domain.orders import (
    ItemKind,
    ObservedStatus,
    Order,
    OrderItem,
    OrderStatus,
    Task,
    TaskStatus,
    TaskType,
)
from printflow_kernel.domain.roles import Actor, Role, RoleAuthority, parse_role, parse_roles
from printflow_kernel.domain.workflow import (
    Action,
    ActionType,
    AvailableAction,
    GuardDecision,
    GuardReason,
    TransitionOutcome,
)

__all__ = [
    "Action",
    "ActionType",
    "Actor",
    "AvailableAction",
    "Clock",
    "DeterministicClock",
    "GuardDecision",
    "GuardReason",
    "ItemKind",
    "ObservedStatus",
    "Order",
    "OrderItem",
    "OrderStatus",
    "Role",
    "RoleAuthority",
    "Severity",
    "StatusChangeEvent",
    "SystemClock",
    "Task",
    "TaskStatus",
    "TaskType",
    "TransitionOutcome",
    "apply_transition",
    "check_action",
    "derive_pending_tasks_for_user",
    "list_available_actions",
    "new_order",
    "observed_status",
    "parse_role",
    "parse_roles",
]
