"""
Execution Recorder — records test runs and keeps TestCase status in step.

``record_execution`` is a two-step saga over the Persistence Gateway:

    1. insert the TestExecution row
    2. update the owning TestCase (status + actual_result)

The store has no cross-table transaction available, so step 2 can fail
after step 1 succeeded. In that case ``PartialExecutionError`` is raised
carrying the persisted execution; the compensation path is
``resync_test_case_status(execution_id)``, which re-applies step 2 from
the stored row without recording a second run.

Outcome → status mapping:
    passed  → done
    failed  → failed
    skipped → status untouched (actual_result still updated)
"""

from __future__ import annotations

import logging
import math

from qadash.core.exceptions import PartialExecutionError, PersistenceError, ValidationError
from qadash.models.testing import EXECUTION_OUTCOMES

logger = logging.getLogger(__name__)

DEFAULT_ACTUAL_RESULT = "Test executed successfully"

OUTCOME_TO_STATUS = {
    "passed": "done",
    "failed": "failed",
}


def _validate(outcome, execution_time) -> float:
    if outcome not in EXECUTION_OUTCOMES:
        raise ValidationError(
            f"outcome must be one of {sorted(EXECUTION_OUTCOMES)}, got {outcome!r}",
            details={"outcome": outcome},
        )
    try:
        seconds = float(execution_time if execution_time is not None else 0.0)
    except (TypeError, ValueError) as exc:
        raise ValidationError(
            "execution_time must be a number of seconds",
            details={"execution_time": execution_time},
        ) from exc
    if seconds < 0 or not math.isfinite(seconds):
        raise ValidationError(
            "execution_time must be a non-negative number of seconds",
            details={"execution_time": execution_time},
        )
    return seconds


def status_patch(execution: dict) -> dict:
    """TestCase fields implied by an execution row."""
    patch = {"actual_result": execution.get("error_message") or DEFAULT_ACTUAL_RESULT}
    status = OUTCOME_TO_STATUS.get(execution["status"])
    if status:
        patch["status"] = status
    return patch


class ExecutionRecorder:
    """Records TestExecutions and propagates their outcome to the TestCase.

    Args:
        gateway: PersistenceGateway instance.
        user_id: Recorded as ``executed_by``.
        notifications: Optional NotificationService; one notification per run.
    """

    def __init__(self, gateway, user_id: str, notifications=None) -> None:
        self.gateway = gateway
        self.user_id = user_id
        self.notifications = notifications

    async def record_execution(
        self,
        test_case_id: str,
        outcome: str,
        execution_time: float = 0.0,
        error_message: str | None = None,
        *,
        environment: str | None = None,
        browser: str | None = None,
    ) -> dict:
        """Record one run of ``test_case_id``.

        Args:
            test_case_id: Existing TestCase id.
            outcome: passed | failed | skipped.
            execution_time: Duration in seconds, >= 0.
            error_message: Stored on the execution and as the case's actual_result.
            environment: Optional execution environment label.
            browser: Optional browser label.

        Returns:
            The persisted TestExecution dict (with generated id and executed_at).

        Raises:
            ValidationError: bad outcome or negative duration.
            NotFoundError: the test case does not exist.
            PersistenceError: the execution insert failed (nothing written).
            PartialExecutionError: the insert succeeded but the case update failed.
        """
        seconds = _validate(outcome, execution_time)
        await self.gateway.fetch_one("test_cases", test_case_id)

        execution = await self.gateway.insert("test_executions", {
            "test_case_id": test_case_id,
            "executed_by": self.user_id,
            "status": outcome,
            "execution_time": seconds,
            "error_message": error_message,
            "environment": environment,
            "browser": browser,
        })

        try:
            await self._apply_to_test_case(execution)
        except PersistenceError as exc:
            logger.error(
                "Execution %s recorded but test case %s update failed: %s",
                execution["id"], test_case_id, exc,
                extra={"test_case_id": test_case_id},
            )
            raise PartialExecutionError(execution, exc) from exc

        logger.info(
            "Execution %s recorded for test case %s outcome=%s",
            execution["id"], test_case_id, outcome,
            extra={"test_case_id": test_case_id},
        )
        if self.notifications is not None:
            await self.notifications.notify(
                title="Test Execution Complete",
                message=f"Test case execution {outcome}",
                type="success" if outcome == "passed" else "error",
            )
        return execution

    async def resync_test_case_status(self, execution_id: str) -> dict:
        """Re-apply an execution's outcome to its test case.

        Compensation for ``PartialExecutionError``. Idempotent.

        Returns:
            The updated TestCase dict.
        """
        execution = await self.gateway.fetch_one("test_executions", execution_id)
        await self._apply_to_test_case(execution)
        logger.info("Test case %s re-synced from execution %s",
                    execution["test_case_id"], execution_id)
        return await self.gateway.fetch_one("test_cases", execution["test_case_id"])

    async def _apply_to_test_case(self, execution: dict) -> None:
        await self.gateway.update(
            "test_cases", status_patch(execution), {"id": execution["test_case_id"]},
        )
