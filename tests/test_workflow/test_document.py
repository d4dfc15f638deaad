"""Tests for document jobs: schema payload filling and the upload flow."""

import json
from datetime import date
from unittest.mock import AsyncMock

import httpx
import pytest

from task_extractor.models.workflow import JobHandle, UploadTarget
from task_extractor.workflow.client import WorkflowClient
from task_extractor.workflow.document import (
    build_schema_payload,
    default_value,
    find_file_field,
    process_document,
    unwrap_outputs,
)
from task_extractor.workflow.runner import JobRunner

TODAY = date(2024, 3, 15)

SCHEMA = {
    "jobPayloadSchema": {
        "contract": {"type": "file", "displayName": "Contract PDF"},
        "notes": {"type": "str", "displayName": "Notes"},
        "page_limit": {"type": "int"},
        "strict": {"type": "bool", "displayName": "Strict Mode"},
        "effective_date": {"type": "date", "displayName": "Effective Date"},
        "tags": {"type": "array", "displayName": "Tags"},
        "options": {"type": "object", "displayName": "Options"},
        "reviewer": {"type": "str", "displayName": "Reviewer", "nullable": True},
    }
}


@pytest.mark.parametrize(
    ("spec", "expected"),
    [
        ({"type": "str"}, ""),
        ({"type": "long_str"}, ""),
        ({"type": "float"}, 0),
        ({"type": "boolean"}, False),
        ({"type": "date"}, "2024-03-15"),
        ({"type": "list"}, []),
        ({"type": "json"}, {}),
        ({"type": "str", "isNullable": True}, None),
        ({"type": "mystery"}, None),
    ],
)
def test_default_value(spec, expected):
    assert default_value(spec, TODAY) == expected


def test_find_file_field_picks_first_file_typed_field():
    fields = {"notes": {"type": "str"}, "scan": {"type": "files"}, "other": {"type": "file"}}
    assert find_file_field(fields) == "scan"
    assert find_file_field({"notes": {"type": "str"}}) is None


def test_build_payload_fills_every_declared_field():
    payload = build_schema_payload(SCHEMA, "https://files.example.com/c.pdf", today=TODAY)

    assert set(payload) == set(SCHEMA["jobPayloadSchema"])
    assert payload["contract"] == {
        "value": "https://files.example.com/c.pdf",
        "type": "file",
        "displayName": "Contract PDF",
    }
    assert payload["notes"]["value"] == ""
    assert payload["page_limit"] == {"value": 0, "type": "int", "displayName": "page_limit"}
    assert payload["strict"]["value"] is False
    assert payload["effective_date"]["value"] == "2024-03-15"
    assert payload["tags"]["value"] == []
    assert payload["options"]["value"] == {}
    assert payload["reviewer"]["value"] is None


def test_build_payload_file_field_only_when_defaults_disabled():
    payload = build_schema_payload(
        SCHEMA, "https://files.example.com/c.pdf", today=TODAY, fill_defaults=False
    )
    assert list(payload) == ["contract"]


def test_files_typed_field_gets_a_list():
    schema = {"jobPayloadSchema": {"docs": {"type": "files", "displayName": "Documents"}}}

    payload = build_schema_payload(schema, "https://files.example.com/a.pdf", today=TODAY)

    assert payload["docs"]["value"] == ["https://files.example.com/a.pdf"]


def test_explicit_file_field_overrides_detection():
    schema = {"jobPayloadSchema": {"a": {"type": "file"}, "b": {"type": "file"}}}

    payload = build_schema_payload(schema, "u", file_field="b", today=TODAY)

    assert payload["b"]["value"] == "u"
    assert payload["a"]["value"] is None


def test_schema_without_file_field_is_rejected():
    with pytest.raises(ValueError, match="no file field"):
        build_schema_payload({"jobPayloadSchema": {"notes": {"type": "str"}}}, "u", today=TODAY)

    with pytest.raises(ValueError):
        build_schema_payload({}, "u", today=TODAY)


def test_unwrap_outputs_removes_value_wrappers():
    raw = {
        "results": {
            "data": {
                "summary": {"value": "Two clauses flagged", "type": "str"},
                "score": {"value": 7, "type": "int"},
                "plain": "as-is",
            }
        }
    }
    assert unwrap_outputs(raw) == {"summary": "Two clauses flagged", "score": 7, "plain": "as-is"}


def test_unwrap_outputs_parses_json_string_data():
    raw = {"results": {"data": json.dumps({"summary": {"value": "ok"}})}}
    assert unwrap_outputs(raw) == {"summary": "ok"}


def test_unwrap_outputs_keeps_unparseable_data():
    assert unwrap_outputs({"results": {"data": "plain text"}}) == {"data": "plain text"}
    assert unwrap_outputs({"data": [1, 2]}) == {"data": [1, 2]}


async def test_process_document_end_to_end():
    calls: list[tuple[str, str]] = []
    executed: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append((request.method, request.url.path))
        path = request.url.path
        if request.url.host == "storage.example.com":
            assert request.content == b"%PDF-1.7 test"
            assert request.headers["content-type"] == "application/pdf"
            return httpx.Response(200)
        if path == "/workflow/wf-doc":
            return httpx.Response(200, json=SCHEMA)
        if path == "/job/initiate":
            return httpx.Response(200, json={"jobExecutionId": "job-42"})
        if path == "/job/file/upload":
            return httpx.Response(
                200,
                json={
                    "presignedUrl": "https://storage.example.com/put/1?sig=abc",
                    "fileUrl": "https://files.example.com/1.pdf",
                },
            )
        if path == "/job/execute":
            executed.update(json.loads(request.content))
            return httpx.Response(200, json={})
        if path == "/job/job-42/status":
            return httpx.Response(200, json={"status": "COMPLETED"})
        if path == "/job/job-42/results":
            return httpx.Response(
                200, json={"results": {"data": {"risk": {"value": "low", "type": "str"}}}}
            )
        return httpx.Response(404)

    client = WorkflowClient(
        "https://operator.example.com", "key", "wf-doc", transport=httpx.MockTransport(handler)
    )
    runner = JobRunner(client, sleep=AsyncMock())

    result = await process_document(
        client, b"%PDF-1.7 test", "pdf", title="Contract", description="Review", runner=runner, today=TODAY
    )

    assert result.job_execution_id == "job-42"
    assert result.file_url == "https://files.example.com/1.pdf"
    assert result.outputs == {"risk": "low"}
    assert executed["jobExecutionId"] == "job-42"
    instance = executed["jobPayloadSchemaInstance"]
    assert instance["contract"]["value"] == "https://files.example.com/1.pdf"
    assert instance["effective_date"]["value"] == "2024-03-15"
    assert calls == [
        ("GET", "/workflow/wf-doc"),
        ("POST", "/job/initiate"),
        ("POST", "/job/file/upload"),
        ("PUT", "/put/1"),
        ("POST", "/job/execute"),
        ("GET", "/job/job-42/status"),
        ("GET", "/job/job-42/results"),
    ]


async def test_process_document_honours_fill_defaults_setting(monkeypatch):
    from task_extractor.config import get_settings

    monkeypatch.setenv("WORKFLOW_FILL_SCHEMA_DEFAULTS", "false")
    get_settings.cache_clear()

    client = AsyncMock()
    client.get_schema.return_value = SCHEMA
    client.request_upload.return_value = UploadTarget(
        presigned_url="https://storage.example.com/x", file_url="https://files.example.com/x.pdf"
    )
    runner = AsyncMock(spec=JobRunner)
    runner.initiate.return_value = JobHandle(job_execution_id="j1")
    runner.run_to_completion.return_value = {"results": {"data": {}}}

    await process_document(client, b"data", "pdf", runner=runner, today=TODAY)

    payload = runner.execute.await_args.args[0]
    assert list(payload) == ["contract"]


async def test_schema_without_file_field_fails_before_job_is_created():
    client = AsyncMock()
    client.get_schema.return_value = {"jobPayloadSchema": {"title": {"type": "str"}}}
    runner = AsyncMock(spec=JobRunner)

    with pytest.raises(ValueError, match="no file field"):
        await process_document(client, b"data", "pdf", runner=runner, today=TODAY)

    runner.initiate.assert_not_awaited()
    client.request_upload.assert_not_awaited()
    client.upload_file.assert_not_awaited()
    runner.execute.assert_not_awaited()
