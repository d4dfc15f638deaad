"""Exception types raised by the Slack adapter and the workflow client.

Everything here propagates to the orchestration entry point uncaught.
Malformed workflow results are not represented: the normalizer degrades
them locally instead of raising.
"""


class TaskExtractorError(Exception):
    """Base class for all pipeline errors."""


class RateLimitError(TaskExtractorError):
    """Upstream asked us to slow down. Not retried automatically."""

    def __init__(self, message: str, retry_after: int = 60, upstream: str = "slack"):
        super().__init__(message)
        self.retry_after = retry_after
        self.upstream = upstream


class MessageFetchError(TaskExtractorError):
    """Slack API call failed for a reason other than rate limiting."""


class WorkflowAPIError(TaskExtractorError):
    """Workflow API returned a non-2xx response or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class JobFailedError(TaskExtractorError):
    """The workflow reported FAILED for a job execution."""

    def __init__(self, job_execution_id: str, diagnostics: dict | None = None):
        self.job_execution_id = job_execution_id
        self.diagnostics = diagnostics or {}
        message = f"Job {job_execution_id} execution failed"
        if self.diagnostics:
            details = ", ".join(f"{k}={v}" for k, v in self.diagnostics.items())
            message = f"{message} ({details})"
        super().__init__(message)


class JobTimeoutError(TaskExtractorError):
    """Polling gave up before the job reached a terminal state."""

    def __init__(self, job_execution_id: str, attempts: int):
        super().__init__(
            f"Job {job_execution_id} polling timeout: no terminal status after {attempts} checks"
        )
        self.job_execution_id = job_execution_id
        self.attempts = attempts
