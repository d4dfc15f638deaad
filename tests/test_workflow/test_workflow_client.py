"""Workflow client tests against an httpx.MockTransport fake of the job API."""

import json

import httpx
import pytest

from task_extractor.errors import RateLimitError, WorkflowAPIError
from task_extractor.models.workflow import JobHandle, JobStatus, UploadTarget
from task_extractor.workflow.client import WorkflowClient, get_workflow_client, reset_client

BASE_URL = "https://operator.example.com"
PRESIGNED = "https://storage.example.com/upload/abc?signature=xyz"


def _make_client(handler) -> WorkflowClient:
    return WorkflowClient(BASE_URL, "svc-key", "wf-123", transport=httpx.MockTransport(handler))


class FakeJobAPI:
    """Records requests and answers like the job operator API."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.status = "IN PROGRESS"

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if request.url.host == "storage.example.com":
            return httpx.Response(200)
        if path == "/workflow/wf-123":
            return httpx.Response(200, json={"jobPayloadSchema": {"doc": {"type": "file"}}})
        if path == "/job/initiate":
            return httpx.Response(200, json={"jobExecutionId": 9761})
        if path == "/job/execute":
            return httpx.Response(200)
        if path.endswith("/status"):
            return httpx.Response(200, json={"status": self.status})
        if path.endswith("/results"):
            return httpx.Response(200, json={"results": {"summary": "done"}})
        if path.endswith("/audit"):
            return httpx.Response(200, json={"events": []})
        if path == "/job/file/upload":
            return httpx.Response(
                200, json={"presignedUrl": PRESIGNED, "fileUrl": "https://files.example.com/abc.pdf"}
            )
        return httpx.Response(404, json={"message": "not found"})


@pytest.fixture()
def api() -> FakeJobAPI:
    return FakeJobAPI()


@pytest.fixture()
def client(api: FakeJobAPI) -> WorkflowClient:
    return _make_client(api)


async def test_initiate_job_sends_workflow_and_title(client, api):
    handle = await client.initiate_job("Slack Channel: eng", "Processing 3 messages from eng")

    assert handle == JobHandle(job_execution_id="9761")
    request = api.requests[0]
    assert request.method == "POST"
    assert request.headers["x-service-key"] == "svc-key"
    assert json.loads(request.content) == {
        "workflowId": "wf-123",
        "title": "Slack Channel: eng",
        "description": "Processing 3 messages from eng",
    }


async def test_execute_job_wraps_payload(client, api):
    payload = {"messages_input": {"value": "hi", "type": "str", "displayName": "Messages Input"}}

    await client.execute_job(JobHandle(job_execution_id="9761"), payload)

    body = json.loads(api.requests[0].content)
    assert body == {"jobExecutionId": "9761", "jobPayloadSchemaInstance": payload}


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("IN PROGRESS", JobStatus.IN_PROGRESS),
        ("IN_PROGRESS", JobStatus.IN_PROGRESS),
        ("COMPLETED", JobStatus.COMPLETED),
        ("failed", JobStatus.FAILED),
        ("QUEUED", JobStatus.IN_PROGRESS),
    ],
)
async def test_get_status_parses_wire_values(client, api, raw, expected):
    api.status = raw
    assert await client.get_status("9761") is expected
    assert api.requests[0].url.path == "/job/9761/status"


async def test_get_results_and_audit(client, api):
    assert await client.get_results("9761") == {"results": {"summary": "done"}}
    assert await client.get_audit_log("9761") == {"events": []}
    assert [r.url.path for r in api.requests] == ["/job/9761/results", "/job/9761/audit"]


async def test_schema_is_cached(client, api):
    first = await client.get_schema()
    second = await client.get_schema()

    assert first == second == {"jobPayloadSchema": {"doc": {"type": "file"}}}
    assert len(api.requests) == 1


async def test_request_upload(client, api):
    target = await client.request_upload(".pdf")

    assert target == UploadTarget(presigned_url=PRESIGNED, file_url="https://files.example.com/abc.pdf")
    assert json.loads(api.requests[0].content) == {"fileExtension": "pdf", "accessScope": "organization"}


async def test_upload_file_skips_service_key(client, api):
    target = UploadTarget(presigned_url=PRESIGNED, file_url="https://files.example.com/abc.pdf")

    await client.upload_file(target, b"%PDF-1.7", "application/pdf")

    request = api.requests[0]
    assert request.method == "PUT"
    assert str(request.url) == PRESIGNED
    assert request.content == b"%PDF-1.7"
    assert request.headers["content-type"] == "application/pdf"
    assert "x-service-key" not in request.headers


async def test_upload_failure_maps_to_workflow_error():
    client = _make_client(lambda request: httpx.Response(403, text="SignatureDoesNotMatch"))
    target = UploadTarget(presigned_url=PRESIGNED, file_url="https://files.example.com/abc.pdf")

    with pytest.raises(WorkflowAPIError, match="Failed to upload file") as exc_info:
        await client.upload_file(target, b"data")

    assert exc_info.value.status_code == 403


async def test_http_error_carries_context_and_api_message():
    client = _make_client(lambda request: httpx.Response(400, json={"message": "workflow not found"}))

    with pytest.raises(WorkflowAPIError) as exc_info:
        await client.initiate_job("t", "d")

    assert str(exc_info.value) == "Failed to initiate job: workflow not found"
    assert exc_info.value.status_code == 400


async def test_server_error_without_body():
    client = _make_client(lambda request: httpx.Response(503))

    with pytest.raises(WorkflowAPIError, match="Failed to get job status: HTTP 503") as exc_info:
        await client.get_status("9761")

    assert exc_info.value.status_code == 503


async def test_429_maps_to_rate_limit_error():
    client = _make_client(lambda request: httpx.Response(429, headers={"Retry-After": "12"}))

    with pytest.raises(RateLimitError) as exc_info:
        await client.get_results("9761")

    assert exc_info.value.retry_after == 12
    assert exc_info.value.upstream == "workflow"


async def test_transport_error_maps_to_workflow_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = _make_client(handler)

    with pytest.raises(WorkflowAPIError, match="Failed to fetch workflow details") as exc_info:
        await client.get_schema()

    assert exc_info.value.status_code is None


async def test_initiate_without_job_id_is_an_error():
    client = _make_client(lambda request: httpx.Response(200, json={}))

    with pytest.raises(WorkflowAPIError, match="no jobExecutionId"):
        await client.initiate_job("t", "d")


@pytest.mark.parametrize("body", [[{"jobExecutionId": 1}], "IN PROGRESS", 42])
async def test_non_object_body_is_a_workflow_error(body):
    client = _make_client(lambda request: httpx.Response(200, json=body))

    with pytest.raises(WorkflowAPIError, match="not a JSON object") as exc_info:
        await client.initiate_job("t", "d")
    assert exc_info.value.status_code == 200

    with pytest.raises(WorkflowAPIError, match="Failed to get job status"):
        await client.get_status("9761")


async def test_test_connection(api):
    assert await _make_client(api).test_connection() is True
    assert await _make_client(lambda r: httpx.Response(401)).test_connection() is False


def test_get_workflow_client_singleton(monkeypatch):
    monkeypatch.setenv("WORKFLOW_ID", "wf-from-env")

    first = get_workflow_client()
    second = get_workflow_client()
    reset_client()
    third = get_workflow_client()

    assert first is second
    assert first is not third
    assert first.workflow_id == "wf-from-env"
