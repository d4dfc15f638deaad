"""Workflow payload builder: messages + existing tasks -> schema instance.

Pure and deterministic. Each input is wrapped in the ``{value, type,
displayName}`` envelope the workflow's payload schema expects.
"""

from collections.abc import Sequence

from task_extractor.extraction.prompts import build_instructions
from task_extractor.models.slack import Message
from task_extractor.models.tasks import ExistingTask

NO_EXISTING_TASKS = "No existing tasks"


def format_messages(messages: Sequence[Message]) -> str:
    """Render messages as a numbered transcript separated by blank lines."""
    return "\n\n".join(
        f"Message {idx}:\n"
        f"From: {msg.sender}\n"
        f"Content: {msg.text}\n"
        f"Timestamp: {msg.timestamp}\n"
        "---"
        for idx, msg in enumerate(messages, start=1)
    )


def format_existing_tasks(tasks: Sequence[ExistingTask] | None) -> str:
    if not tasks:
        return NO_EXISTING_TASKS
    return "\n".join(
        f"Task {idx}: {task.title} (Priority: {task.priority}, Status: {task.status})"
        for idx, task in enumerate(tasks, start=1)
    )


def _string_input(value: str, display_name: str) -> dict:
    return {"value": value, "type": "str", "displayName": display_name}


def build_message_payload(
    messages: Sequence[Message],
    existing_tasks: Sequence[ExistingTask] | None = None,
    channel_name: str | None = None,
) -> dict:
    """Build the ``jobPayloadSchemaInstance`` for a task extraction job."""
    return {
        "messages_input": _string_input(format_messages(messages), "Messages Input"),
        "existing_tasks": _string_input(format_existing_tasks(existing_tasks), "Existing Tasks"),
        "processing_instructions": _string_input(
            build_instructions(channel_name), "Processing Instructions"
        ),
    }
