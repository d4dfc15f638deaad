"""Best-effort normalization of raw workflow results.

The workflow's output shape is loosely typed: data may be a dict, a JSON
string, free text, or missing entirely, and task entries vary in quality.
normalize_results always returns a well-formed TaskExtractionResult. Shape
problems are logged and degraded, never raised, because callers assume a
valid result.
"""

import json
import logging

from pydantic import ValidationError

from task_extractor.models.tasks import (
    ExtractedTask,
    ReprioritizationRecommendation,
    ResultMetadata,
    TaskExtractionResult,
)

logger = logging.getLogger(__name__)


def default_summary(message_count: int, channel_name: str | None) -> str:
    return f"Processed {message_count} messages from {channel_name or 'channel'}"


def _unwrap_body(raw: object) -> dict:
    """Return the results body: ``raw["results"]`` when present, else raw itself."""
    if not isinstance(raw, dict):
        return {}
    results = raw.get("results")
    return results if isinstance(results, dict) else raw


def _extract_data(body: dict) -> dict:
    """Resolve the ``data`` field into a dict of extraction output.

    - dict: used as is
    - str: parsed as JSON; unparseable text becomes the summary
    - absent: the body itself carries the fields
    """
    if "data" not in body or body["data"] is None:
        return body

    data = body["data"]
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except ValueError:
            return {"summary": data}

    if isinstance(data, dict):
        return data

    # A bare list is read as the task list
    if isinstance(data, list):
        return {"tasks": data}

    logger.warning("Unexpected result data type %s, ignoring", type(data).__name__)
    return {}


def _parse_tasks(entries: object) -> list[ExtractedTask]:
    if not isinstance(entries, list):
        return []

    tasks: list[ExtractedTask] = []
    for entry in entries:
        if not isinstance(entry, dict):
            logger.warning("Dropping non-object task entry: %r", entry)
            continue
        try:
            tasks.append(ExtractedTask.model_validate(entry))
        except ValidationError as exc:
            logger.warning(
                "Dropping malformed task entry",
                extra={"entry": entry, "errors": exc.error_count()},
            )
    return tasks


def _parse_recommendations(entries: object) -> list[ReprioritizationRecommendation]:
    if not isinstance(entries, list):
        return []
    return [
        ReprioritizationRecommendation.model_validate(entry)
        for entry in entries
        if isinstance(entry, dict)
    ]


def normalize_results(
    raw: object,
    message_count: int,
    channel_name: str | None = None,
    processing_time_ms: int = 0,
) -> TaskExtractionResult:
    """Turn raw job results into a TaskExtractionResult. Never raises.

    Tasks are read from ``tasks``, then ``extracted_tasks``; summary from
    ``summary`` or synthesized. Any unexpected failure degrades to an empty
    task list with a synthesized summary.
    """
    try:
        body = _unwrap_body(raw)
        data = _extract_data(body)

        task_entries = data.get("tasks")
        if task_entries is None:
            task_entries = data.get("extracted_tasks")
        tasks = _parse_tasks(task_entries)

        summary = data.get("summary") or body.get("summary")
        if not isinstance(summary, str) or not summary.strip():
            summary = default_summary(message_count, channel_name)

        # Count distinct source messages; several tasks can share one
        source_ts = {task.source_message_ts for task in tasks}

        return TaskExtractionResult(
            summary=summary,
            tasks=tasks,
            reprioritization_recommendations=_parse_recommendations(
                data.get("reprioritization_recommendations")
            ),
            metadata=ResultMetadata(
                total_messages=message_count,
                messages_with_tasks=min(len(source_ts), message_count),
                processing_time_ms=processing_time_ms,
                channel_name=channel_name,
            ),
        )
    except Exception:
        logger.warning("Could not normalize workflow results, degrading", exc_info=True)
        return TaskExtractionResult(
            summary=default_summary(message_count, channel_name),
            tasks=[],
            metadata=ResultMetadata(
                total_messages=message_count,
                messages_with_tasks=0,
                processing_time_ms=processing_time_ms,
                channel_name=channel_name,
            ),
        )
