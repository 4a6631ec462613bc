"""
Typed Exception Hierarchy for the Printflow Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Workflow callers (API handlers, CLI scripts, UI adapters) need to react to
failures precisely: a guard violation means "re-fetch and re-render the
available actions", a concurrent modification means "re-read and recompute",
a persistence failure means "nothing was applied".  Parsing message strings
for that is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        service.perform(order_id, action, actor)
    except GuardViolationError as e:
        return {"error": e.code, "reason": e.reason, "order_id": e.order_id}

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    PrintflowError (base)
    |
    +-- WorkflowError
    |   +-- GuardViolationError
    |
    +-- NotFoundError
    |   +-- OrderNotFoundError
    |   +-- TaskNotFoundError
    |   +-- UserNotFoundError
    |
    +-- ValidationError
    |   +-- InvalidOrderError
    |
    +-- ConcurrencyError
    |   +-- ConcurrentModificationError
    |
    +-- PersistenceError
    |   +-- PersistenceFailureError
    |
    +-- ConfigurationError
        +-- CollaboratorMissingError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                      | When Raised
-------------|---------------------------|------------------------------------
Workflow     | GUARD_VIOLATION           | Role/status/assignee/task check failed
-------------|---------------------------|------------------------------------
Not found    | ORDER_NOT_FOUND           | Order id doesn't exist
             | TASK_NOT_FOUND            | Task id doesn't exist
             | USER_NOT_FOUND            | Role oracle doesn't know the user
-------------|---------------------------|------------------------------------
Validation   | INVALID_ORDER             | Order creation input is malformed
-------------|---------------------------|------------------------------------
Concurrency  | CONCURRENT_MODIFICATION   | Order changed between read and write
-------------|---------------------------|------------------------------------
Persistence  | PERSISTENCE_FAILURE       | Store write failed, nothing applied
-------------|---------------------------|------------------------------------
Configuration| COLLABORATOR_MISSING      | Service lacks a required collaborator

===============================================================================
"""

from __future__ import annotations


class PrintflowError(Exception):
    """
    Base exception for all printflow errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "PRINTFLOW_ERROR"


# Workflow-related exceptions


class WorkflowError(PrintflowError):
    """Base exception for workflow transition errors."""

    code: str = "WORKFLOW_ERROR"


class GuardViolationError(WorkflowError):
    """
    An action's authorization or precondition check failed.

    Always recoverable: the caller should re-fetch the order and re-render
    the available actions.  ``reason`` is one of the ``GuardReason`` values
    from ``printflow_kernel.domain.workflow``.
    """

    code: str = "GUARD_VIOLATION"

    def __init__(
        self,
        reason: str,
        detail: str,
        order_id: int | None = None,
        action: str | None = None,
        order_status: str | None = None,
    ):
        self.reason = reason
        self.detail = detail
        self.order_id = order_id
        self.action = action
        self.order_status = order_status
        super().__init__(
            f"Action {action} not permitted on order {order_id} "
            f"({reason}): {detail}"
        )


# Lookup exceptions


class NotFoundError(PrintflowError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"


class OrderNotFoundError(NotFoundError):
    """Order with given ID was not found."""

    code: str = "ORDER_NOT_FOUND"

    def __init__(self, order_id: int):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class TaskNotFoundError(NotFoundError):
    """Task with given ID was not found."""

    code: str = "TASK_NOT_FOUND"

    def __init__(self, task_id: int):
        self.task_id = task_id
        super().__init__(f"Task not found: {task_id}")


class UserNotFoundError(NotFoundError):
    """The role authority has no record of this user."""

    code: str = "USER_NOT_FOUND"

    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__(f"User not found: {user_id}")


# Input validation


class ValidationError(PrintflowError):
    """Base exception for malformed input."""

    code: str = "VALIDATION_ERROR"


class InvalidOrderError(ValidationError):
    """Order creation input does not describe a valid order."""

    code: str = "INVALID_ORDER"

    def __init__(self, field: str, detail: str):
        self.field = field
        self.detail = detail
        super().__init__(f"Invalid order ({field}): {detail}")


# Concurrency


class ConcurrencyError(PrintflowError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConcurrentModificationError(ConcurrencyError):
    """
    The order changed between read and write.

    Callers should re-read the order and recompute the available actions,
    not blindly retry the same action.
    """

    code: str = "CONCURRENT_MODIFICATION"

    def __init__(self, order_id: int, expected_version: int, actual_version: int | None = None):
        self.order_id = order_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Concurrent modification on order {order_id}: expected version "
            f"{expected_version}, found {actual_version}"
        )


# Persistence


class PersistenceError(PrintflowError):
    """Base exception for store failures."""

    code: str = "PERSISTENCE_ERROR"


class PersistenceFailureError(PersistenceError):
    """A store write failed; no part of the transition is applied."""

    code: str = "PERSISTENCE_FAILURE"

    def __init__(self, operation: str, detail: str, order_id: int | None = None):
        self.operation = operation
        self.detail = detail
        self.order_id = order_id
        super().__init__(f"Persistence failure during {operation}: {detail}")


# Configuration


class ConfigurationError(PrintflowError):
    """Base exception for services wired without what a request needs."""

    code: str = "CONFIGURATION_ERROR"


class CollaboratorMissingError(ConfigurationError):
    """The request needs a collaborator the service was built without."""

    code: str = "COLLABORATOR_MISSING"

    def __init__(self, collaborator: str, operation: str):
        self.collaborator = collaborator
        self.operation = operation
        super().__init__(
            f"{operation} requires a {collaborator}, but none is configured"
        )
