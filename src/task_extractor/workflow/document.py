"""Binary-artifact jobs: upload a document, run the workflow on it.

The flow is schema -> initiate -> presigned upload -> execute -> poll ->
results. The execute payload fills every field the workflow schema
declares, not just the file field, because the workflow rejects payloads
with fields missing.
"""

import json
import logging
import mimetypes
from datetime import date

from task_extractor.config import get_settings
from task_extractor.models.workflow import DocumentJobResult
from task_extractor.workflow.client import WorkflowClient
from task_extractor.workflow.runner import JobRunner

logger = logging.getLogger(__name__)

_FILE_TYPES = frozenset({"file", "files"})
_STRING_TYPES = frozenset({"str", "string", "text", "long_str"})
_NUMBER_TYPES = frozenset({"int", "integer", "float", "number", "double"})
_BOOL_TYPES = frozenset({"bool", "boolean"})
_ARRAY_TYPES = frozenset({"array", "list"})
_OBJECT_TYPES = frozenset({"object", "dict", "json"})
_NULLABLE_KEYS = ("nullable", "isNullable", "is_nullable")


def _field_type(spec: dict) -> str:
    return str(spec.get("type") or "").lower()


def _display_name(name: str, spec: dict) -> str:
    return spec.get("displayName") or spec.get("display_name") or name


def default_value(spec: dict, today: date):
    """Type-appropriate placeholder for a schema field the job does not use."""
    if any(spec.get(key) for key in _NULLABLE_KEYS):
        return None

    field_type = _field_type(spec)
    if field_type in _STRING_TYPES:
        return ""
    if field_type in _NUMBER_TYPES:
        return 0
    if field_type in _BOOL_TYPES:
        return False
    if field_type == "date":
        return today.isoformat()
    if field_type in _ARRAY_TYPES:
        return []
    if field_type in _OBJECT_TYPES:
        return {}
    return None


def find_file_field(fields: dict) -> str | None:
    """Name of the first field typed as a file upload, if any."""
    for name, spec in fields.items():
        if isinstance(spec, dict) and _field_type(spec) in _FILE_TYPES:
            return name
    return None


def build_schema_payload(
    schema: dict,
    file_url: str,
    *,
    file_field: str | None = None,
    today: date | None = None,
    fill_defaults: bool = True,
) -> dict:
    """Build a ``jobPayloadSchemaInstance`` for a document job.

    Args:
        schema: Workflow definition from ``GET /workflow/{id}``.
        file_url: Permanent URL of the uploaded document.
        file_field: Field that receives the file; defaults to the first
            ``file``/``files`` typed field.
        today: Date used for ``date`` fields. Defaults to today.
        fill_defaults: When False only the file field is sent.

    Raises:
        ValueError: The schema declares no usable file field.
    """
    fields = schema.get("jobPayloadSchema") or {}
    file_field = file_field or find_file_field(fields)
    if not file_field or file_field not in fields:
        raise ValueError("Workflow schema declares no file field")

    today = today or date.today()
    payload: dict = {}

    for name, spec in fields.items():
        if not isinstance(spec, dict):
            continue
        if name != file_field and not fill_defaults:
            continue

        field_type = _field_type(spec) or "str"
        if name == file_field:
            value = [file_url] if field_type == "files" else file_url
        else:
            value = default_value(spec, today)

        payload[name] = {
            "value": value,
            "type": field_type,
            "displayName": _display_name(name, spec),
        }

    return payload


def unwrap_outputs(raw: dict) -> dict:
    """Flatten job results into ``{field: value}``.

    Output fields come back wrapped as ``{"value": ..., "type": ...}``; the
    wrapper is dropped. Fields that are not wrapped pass through unchanged.
    """
    body = raw.get("results") if isinstance(raw.get("results"), dict) else raw
    data = body.get("data", body)
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except ValueError:
            return {"data": data}
    if not isinstance(data, dict):
        return {"data": data}

    return {
        name: value["value"] if isinstance(value, dict) and "value" in value else value
        for name, value in data.items()
    }


async def process_document(
    client: WorkflowClient,
    data: bytes,
    file_extension: str,
    *,
    title: str = "Document Processing",
    description: str = "Processing uploaded document",
    runner: JobRunner | None = None,
    today: date | None = None,
) -> DocumentJobResult:
    """Run a document through the workflow and return its unwrapped outputs.

    The schema is checked for a file field before anything is created
    upstream, so a bad schema leaves no initiated job or uploaded file.
    Any later failure aborts the job; nothing is retried.

    Raises:
        ValueError: The workflow schema declares no file field.
    """
    settings = get_settings()
    runner = runner or JobRunner(
        client,
        interval_ms=settings.workflow_poll_interval_ms,
        max_attempts=settings.workflow_poll_max_attempts,
    )

    schema = await client.get_schema()
    file_field = find_file_field(schema.get("jobPayloadSchema") or {})
    if file_field is None:
        raise ValueError("Workflow schema declares no file field")

    handle = await runner.initiate(title, description)

    target = await client.request_upload(file_extension)
    content_type = mimetypes.guess_type(f"upload.{file_extension.lstrip('.')}")[0]
    await client.upload_file(target, data, content_type or "application/octet-stream")

    payload = build_schema_payload(
        schema,
        target.file_url,
        file_field=file_field,
        today=today,
        fill_defaults=settings.workflow_fill_schema_defaults,
    )
    await runner.execute(payload)
    raw = await runner.run_to_completion()

    logger.info(
        "Document job complete",
        extra={"job_execution_id": handle.job_execution_id, "bytes": len(data)},
    )
    return DocumentJobResult(
        job_execution_id=handle.job_execution_id,
        file_url=target.file_url,
        outputs=unwrap_outputs(raw),
        raw=raw,
    )
