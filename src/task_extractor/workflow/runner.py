"""Job lifecycle state machine: initiate -> execute -> poll -> results.

PENDING -> INITIATED -> EXECUTING -> POLLING -> COMPLETED | FAILED | TIMED_OUT

A runner may also jump PENDING -> POLLING to follow a job someone else
started. Transitions only move forward; a runner is single-use.

Polling is a fixed-interval loop (tenacity AsyncRetrying retrying on a
non-terminal status) with an injectable sleep, so tests can run sixty polls
without waiting three minutes.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_result,
    stop_after_attempt,
    wait_fixed,
)

from task_extractor.errors import JobFailedError, JobTimeoutError, TaskExtractorError
from task_extractor.models.workflow import JobHandle, JobStatus
from task_extractor.workflow.client import WorkflowClient

logger = logging.getLogger(__name__)

# Result fields worth surfacing when a job fails
_DIAGNOSTIC_FIELDS = ("status", "error", "message", "errorMessage", "summary", "reason")


class RunState(str, Enum):
    """Where a JobRunner is in the job lifecycle."""

    PENDING = "pending"
    INITIATED = "initiated"
    EXECUTING = "executing"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


_TRANSITIONS: dict[RunState, frozenset[RunState]] = {
    RunState.PENDING: frozenset({RunState.INITIATED, RunState.POLLING}),
    RunState.INITIATED: frozenset({RunState.EXECUTING}),
    RunState.EXECUTING: frozenset({RunState.POLLING}),
    RunState.POLLING: frozenset({RunState.COMPLETED, RunState.FAILED, RunState.TIMED_OUT}),
    RunState.COMPLETED: frozenset(),
    RunState.FAILED: frozenset(),
    RunState.TIMED_OUT: frozenset(),
}


class JobRunner:
    """Drives a single job execution through its lifecycle."""

    def __init__(
        self,
        client: WorkflowClient,
        *,
        interval_ms: int = 3000,
        max_attempts: int = 60,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._client = client
        self.interval_ms = interval_ms
        self.max_attempts = max_attempts
        self._sleep = sleep
        self.state = RunState.PENDING
        self.handle: JobHandle | None = None
        self.status_checks = 0

    def _transition(self, new_state: RunState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal job transition {self.state.value} -> {new_state.value}")
        logger.debug("Job %s: %s -> %s", self.handle, self.state.value, new_state.value)
        self.state = new_state

    async def initiate(self, title: str, description: str) -> JobHandle:
        if self.state is not RunState.PENDING:
            raise RuntimeError(f"Cannot initiate from state {self.state.value}")
        self.handle = await self._client.initiate_job(title, description)
        self._transition(RunState.INITIATED)
        return self.handle

    async def execute(self, payload: dict) -> None:
        if self.state is not RunState.INITIATED:
            raise RuntimeError(f"Cannot execute from state {self.state.value}")
        await self._client.execute_job(self.handle, payload)
        self._transition(RunState.EXECUTING)

    async def run(self, title: str, description: str, payload: dict) -> tuple[JobHandle, dict]:
        """Initiate, execute, and poll a job; return its handle and raw results."""
        handle = await self.initiate(title, description)
        await self.execute(payload)
        results = await self.run_to_completion()
        return handle, results

    async def run_to_completion(self, handle: JobHandle | str | None = None) -> dict:
        """Poll job status until it is terminal, then return the raw results.

        On COMPLETED the results are fetched once, right after the status
        check that saw it. On FAILED one diagnostic results fetch is made
        before raising.

        Raises:
            JobFailedError: The workflow reported FAILED.
            JobTimeoutError: ``max_attempts`` status checks without a terminal status.
            WorkflowAPIError: A status or results call itself failed.
        """
        if handle is not None:
            self.handle = handle if isinstance(handle, JobHandle) else JobHandle(job_execution_id=str(handle))
        if self.handle is None:
            raise RuntimeError("run_to_completion needs a job handle")
        self._transition(RunState.POLLING)

        retrying = AsyncRetrying(
            retry=retry_if_result(lambda status: not status.is_terminal),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_fixed(self.interval_ms / 1000),
            sleep=self._sleep,
            before_sleep=before_sleep_log(logger, logging.DEBUG),
            # Out of attempts: hand back the last status instead of RetryError
            retry_error_callback=lambda retry_state: retry_state.outcome.result(),
        )
        status = await retrying(self._check_status)

        if status is JobStatus.COMPLETED:
            self._transition(RunState.COMPLETED)
            logger.info("Job %s completed", self.handle)
            return await self._client.get_results(self.handle)

        if status is JobStatus.FAILED:
            self._transition(RunState.FAILED)
            diagnostics = await self._diagnostics()
            raise JobFailedError(self.handle.job_execution_id, diagnostics)

        self._transition(RunState.TIMED_OUT)
        logger.warning(
            "Job %s still running after %d status checks",
            self.handle,
            self.status_checks,
        )
        raise JobTimeoutError(self.handle.job_execution_id, self.status_checks)

    async def _check_status(self) -> JobStatus:
        status = await self._client.get_status(self.handle)
        self.status_checks += 1
        logger.info(
            "Job status [%d/%d]: %s",
            self.status_checks,
            self.max_attempts,
            status.value,
            extra={"job_execution_id": self.handle.job_execution_id},
        )
        return status

    async def _diagnostics(self) -> dict:
        """Best-effort: pull whatever explains the failure from the results endpoint."""
        try:
            raw = await self._client.get_results(self.handle)
        except TaskExtractorError:
            logger.warning("Could not fetch diagnostics for failed job %s", self.handle, exc_info=True)
            return {}
        if not isinstance(raw, dict):
            return {}

        body = raw.get("results") if isinstance(raw.get("results"), dict) else {}
        diagnostics = {}
        for source in (raw, body):
            for key in _DIAGNOSTIC_FIELDS:
                value = source.get(key)
                if value and key not in diagnostics and not isinstance(value, (dict, list)):
                    diagnostics[key] = value
        return diagnostics
