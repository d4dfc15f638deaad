"""Async client for the workflow job operator API.

Wraps httpx.AsyncClient with the service-key header and maps every call of
the job protocol (schema, initiate, upload, execute, status, results, audit)
to a method. Non-2xx responses become WorkflowAPIError (or RateLimitError on
429) with the failing step named in the message.
"""

import logging
from collections.abc import Awaitable, Callable

import httpx
from cachetools import TTLCache

from task_extractor.config import get_settings
from task_extractor.errors import RateLimitError, TaskExtractorError, WorkflowAPIError
from task_extractor.models.workflow import JobHandle, JobStatus, UploadTarget

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = httpx.Timeout(30.0)
# Presigned uploads can be large; give the PUT leg more room
_UPLOAD_TIMEOUT = httpx.Timeout(120.0)


def _job_id(handle: JobHandle | str) -> str:
    return handle.job_execution_id if isinstance(handle, JobHandle) else str(handle)


class WorkflowClient:
    """One workflow, one service key, one pooled HTTP client."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        workflow_id: str,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: httpx.Timeout = _DEFAULT_TIMEOUT,
        schema_ttl: float = 300,
    ):
        self.workflow_id = workflow_id
        self._transport = transport
        self._http = httpx.AsyncClient(
            base_url=base_url,
            headers={"Content-Type": "application/json", "x-service-key": api_key},
            timeout=timeout,
            transport=transport,
        )
        self._schema_cache: TTLCache = TTLCache(maxsize=1, ttl=schema_ttl)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, context: str, **kwargs) -> dict:
        """Send one API request and return the decoded JSON object ({} if empty).

        Every job endpoint answers with an object; any other JSON body is
        treated as an API error.
        """
        try:
            response = await self._http.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise _map_status_error(exc.response, context) from exc
        except httpx.HTTPError as exc:
            logger.error("%s: %s", context, exc)
            raise WorkflowAPIError(f"{context}: {exc}") from exc

        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError as exc:
            raise WorkflowAPIError(
                f"{context}: response was not valid JSON", status_code=response.status_code
            ) from exc
        if not isinstance(data, dict):
            logger.error("%s: expected a JSON object, got %s", context, type(data).__name__)
            raise WorkflowAPIError(
                f"{context}: response was not a JSON object", status_code=response.status_code
            )
        return data

    async def test_connection(self) -> bool:
        """Fetch the workflow definition as a connectivity check. Never raises."""
        try:
            await self.get_schema()
        except TaskExtractorError:
            logger.warning("Workflow API connection check failed", exc_info=True)
            return False
        return True

    async def get_schema(self) -> dict:
        """Return the workflow definition, including ``jobPayloadSchema``.

        Cached for a few minutes; the schema only changes when the workflow
        is republished.
        """
        cached = self._schema_cache.get(self.workflow_id)
        if cached is not None:
            return cached

        schema = await self._request(
            "GET", f"/workflow/{self.workflow_id}", "Failed to fetch workflow details"
        )
        self._schema_cache[self.workflow_id] = schema
        return schema

    async def initiate_job(self, title: str, description: str) -> JobHandle:
        data = await self._request(
            "POST",
            "/job/initiate",
            "Failed to initiate job",
            json={"workflowId": self.workflow_id, "title": title, "description": description},
        )
        job_id = data.get("jobExecutionId")
        if not job_id:
            raise WorkflowAPIError("Failed to initiate job: response had no jobExecutionId")

        logger.info("Job initiated: %s", job_id, extra={"job_execution_id": str(job_id)})
        return JobHandle(job_execution_id=str(job_id))

    async def execute_job(self, handle: JobHandle | str, payload: dict) -> None:
        job_id = _job_id(handle)
        await self._request(
            "POST",
            "/job/execute",
            "Failed to execute job",
            json={"jobExecutionId": job_id, "jobPayloadSchemaInstance": payload},
        )
        logger.info("Job executing: %s", job_id, extra={"job_execution_id": job_id})

    async def get_status(self, handle: JobHandle | str) -> JobStatus:
        job_id = _job_id(handle)
        data = await self._request("GET", f"/job/{job_id}/status", "Failed to get job status")
        raw_status = data.get("status")
        status = JobStatus.parse(raw_status)
        if status is None:
            logger.warning("Unrecognized status %r for job %s, treating as in progress", raw_status, job_id)
            return JobStatus.IN_PROGRESS
        return status

    async def get_results(self, handle: JobHandle | str) -> dict:
        job_id = _job_id(handle)
        return await self._request("GET", f"/job/{job_id}/results", "Failed to get job results")

    async def get_audit_log(self, handle: JobHandle | str) -> dict:
        job_id = _job_id(handle)
        return await self._request("GET", f"/job/{job_id}/audit", "Failed to get job audit log")

    async def request_upload(
        self, file_extension: str, access_scope: str = "organization"
    ) -> UploadTarget:
        """Ask for a one-time presigned upload URL and the permanent file URL."""
        data = await self._request(
            "POST",
            "/job/file/upload",
            "Failed to request file upload",
            json={"fileExtension": file_extension.lstrip("."), "accessScope": access_scope},
        )
        try:
            return UploadTarget(presigned_url=data["presignedUrl"], file_url=data["fileUrl"])
        except KeyError as exc:
            raise WorkflowAPIError(f"Failed to request file upload: response missing {exc}") from exc

    async def upload_file(
        self,
        target: UploadTarget,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> None:
        """PUT raw bytes to the presigned URL.

        Uses a separate client with no service-key header: the presigned URL
        belongs to the storage provider, not the workflow API.
        """
        try:
            async with httpx.AsyncClient(timeout=_UPLOAD_TIMEOUT, transport=self._transport) as client:
                response = await client.put(
                    target.presigned_url,
                    content=data,
                    headers={"Content-Type": content_type},
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise _map_status_error(exc.response, "Failed to upload file") from exc
        except httpx.HTTPError as exc:
            logger.error("Failed to upload file: %s", exc)
            raise WorkflowAPIError(f"Failed to upload file: {exc}") from exc

        logger.info("Uploaded %d bytes to %s", len(data), target.file_url)

    async def run_to_completion(
        self,
        handle: JobHandle | str,
        interval_ms: int = 3000,
        max_attempts: int = 60,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> dict:
        """Poll until the job finishes and return its raw results.

        Thin wrapper around JobRunner for callers that already hold a handle.
        """
        # Lazy import: runner depends on this module for type hints
        from task_extractor.workflow.runner import JobRunner

        kwargs = {"interval_ms": interval_ms, "max_attempts": max_attempts}
        if sleep is not None:
            kwargs["sleep"] = sleep
        runner = JobRunner(self, **kwargs)
        return await runner.run_to_completion(handle)


def _map_status_error(response: httpx.Response, context: str) -> WorkflowAPIError | RateLimitError:
    """Build a pipeline error from a non-2xx workflow API response."""
    message = _error_message(response)
    logger.error(
        "%s: %s",
        context,
        message,
        extra={"status_code": response.status_code},
    )
    if response.status_code == 429:
        try:
            retry_after = int(response.headers.get("Retry-After", "60"))
        except ValueError:
            retry_after = 60
        return RateLimitError(
            f"{context}: rate limited", retry_after=retry_after, upstream="workflow"
        )
    return WorkflowAPIError(f"{context}: {message}", status_code=response.status_code)


def _error_message(response: httpx.Response) -> str:
    """Prefer the API's own message field; fall back to the status line."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            if body.get(key):
                return str(body[key])
    return f"HTTP {response.status_code} {response.reason_phrase}".strip()


_client: WorkflowClient | None = None


def get_workflow_client() -> WorkflowClient:
    """Return a cached workflow client built from settings."""
    global _client
    if _client is None:
        settings = get_settings()
        _client = WorkflowClient(
            settings.workflow_base_url,
            settings.workflow_api_key,
            settings.workflow_id,
        )
    return _client


def reset_client() -> None:
    """Reset the cached client instance. Used for testing."""
    global _client
    _client = None
