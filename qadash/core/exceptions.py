"""
Data-flow exception hierarchy.

Every service in ``qadash.services`` raises these types and nothing else
for domain failures. The error handlers registered on
``qadash.blueprints.data_flow_bp`` map them to HTTP status codes once, so
routes never translate errors by hand.

Usage:
    from qadash.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="TestCase", resource_id="tc-1")
    raise ValidationError("outcome must be one of ...", details={"outcome": "..."})

Propagation:
    NotFoundError, ValidationError, InvalidRangeError and PersistenceError
    surface to the caller unchanged. ProviderError is contained by the
    integration sync coordinator and turned into a failed SyncResult.
"""

from __future__ import annotations

from datetime import date
from typing import Any


class NotFoundError(Exception):
    """Raised when a referenced row does not exist.

    Args:
        resource: Human-readable entity name (e.g. "TestCase", "Integration").
        resource_id: The identifier that was looked up.
    """

    def __init__(self, resource: str, resource_id: str | int | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input violates an enumerated field or numeric constraint.

    Maps to HTTP 422.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown. Keys are field names.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class InvalidRangeError(ValidationError):
    """Raised when a date window has ``date_from`` after ``date_to``."""

    def __init__(self, date_from: date, date_to: date) -> None:
        self.date_from = date_from
        self.date_to = date_to
        super().__init__(
            f"date_from ({date_from.isoformat()}) must not be after date_to ({date_to.isoformat()})",
            details={"date_from": date_from.isoformat(), "date_to": date_to.isoformat()},
        )


class PersistenceError(Exception):
    """Raised when a Persistence Gateway call fails.

    The driver-level exception is chained as ``__cause__``.

    Args:
        message: What went wrong.
        operation: Gateway operation name ("read", "insert", "update").
        table: Table the operation targeted.
    """

    def __init__(self, message: str, operation: str | None = None, table: str | None = None) -> None:
        self.operation = operation
        self.table = table
        super().__init__(message)


class PartialExecutionError(PersistenceError):
    """The execution row was inserted but the test-case status update failed.

    ``execution`` is the persisted TestExecution dict. Callers re-drive the
    status update with ``ExecutionRecorder.resync_test_case_status`` instead
    of recording the run a second time.
    """

    def __init__(self, execution: dict[str, Any], cause: Exception) -> None:
        self.execution = execution
        super().__init__(
            f"Execution {execution.get('id')} recorded but test case "
            f"{execution.get('test_case_id')} was not updated: {cause}",
            operation="update",
            table="test_cases",
        )


class ProviderError(Exception):
    """Raised by a provider sync step when the external system rejects or fails a call."""

    def __init__(self, provider: str, message: str) -> None:
        self.provider = provider
        super().__init__(message)
