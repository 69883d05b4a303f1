"""Execution recorder: exactly one stats update per executed workflow."""

from __future__ import annotations

import traceback

from storeflow.application.interfaces.ports import IWorkflowRepository
from storeflow.domain.entities.workflow import LastError
from storeflow.domain.exceptions import ExecutionCancelledError
from storeflow.shared.telemetry.logging import get_logger
from storeflow.shared.utils.clock import IClock, SystemClock

logger = get_logger(__name__)


def _details_for(error: BaseException) -> str | None:
    """Formatted traceback when one exists, else the error's repr."""
    if error.__traceback__ is None and error.__cause__ is None:
        return repr(error)
    return "".join(traceback.format_exception(error)).rstrip()


class ExecutionRecorder:
    """Packages errors into ``lastError`` and forwards to the repository.

    Recorder failures are logged and swallowed: a broken stats write must
    never fail the execution that triggered it.
    """

    def __init__(self, repository: IWorkflowRepository, clock: IClock | None = None) -> None:
        self._repository = repository
        self._clock = clock or SystemClock()

    async def record(
        self,
        workflow_id: str,
        success: bool,
        error: BaseException | None = None,
    ) -> None:
        now = self._clock.now()
        last_error: LastError | None = None
        # Cancellation counts as a failure but leaves lastError untouched.
        if not success and error is not None and not isinstance(error, ExecutionCancelledError):
            last_error = LastError(
                message=getattr(error, "message", None) or str(error) or type(error).__name__,
                timestamp=now,
                details=_details_for(error),
            )
        try:
            await self._repository.record_execution(
                workflow_id, success, error=last_error, executed_at=now
            )
        except Exception:
            logger.exception("Failed to record execution for workflow %s", workflow_id)
