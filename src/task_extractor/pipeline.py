"""Extraction pipeline: Slack history (or supplied messages) -> workflow job -> tasks.

Stages run strictly in sequence and any failure aborts the whole call.
There is no partial commit and no resume; calling again re-fetches the
messages and runs a fresh job.
"""

import logging
import time
from collections.abc import Callable, Sequence

from task_extractor.config import get_settings
from task_extractor.extraction import build_message_payload, normalize_results
from task_extractor.models.slack import Message
from task_extractor.models.tasks import (
    ChannelProcessingResult,
    ExistingTask,
    MessageProcessingResult,
    ResultMetadata,
    TaskExtractionResult,
)
from task_extractor.slack.client import get_message_source
from task_extractor.slack.source import SlackMessageSource
from task_extractor.workflow.client import WorkflowClient, get_workflow_client
from task_extractor.workflow.runner import JobRunner

logger = logging.getLogger(__name__)

NO_MESSAGES_SUMMARY = "No messages found in the specified time range"
NO_INPUT_SUMMARY = "No messages to process"


async def process_channel_messages(
    channel_id: str,
    oldest: str | None = None,
    latest: str | None = None,
    include_threads: bool = False,
    existing_tasks: Sequence[ExistingTask] | None = None,
    *,
    source: SlackMessageSource | None = None,
    workflow: WorkflowClient | None = None,
    runner_factory: Callable[[WorkflowClient], JobRunner] | None = None,
) -> ChannelProcessingResult:
    """Extract tasks from a channel's recent messages.

    1. Resolve channel metadata
    2. Fetch and filter messages (short-circuit if none qualify)
    3. Build the workflow payload
    4. Initiate, execute, and poll the job
    5. Normalize the results

    Collaborators default to the process-wide singletons; tests inject their
    own.

    Raises:
        RateLimitError, MessageFetchError: Slack stage failed.
        WorkflowAPIError, JobFailedError, JobTimeoutError: workflow stage failed.
    """
    source = source or await get_message_source()

    channel = await source.get_channel_info(channel_id)
    logger.info(
        "Processing channel %s (private: %s)",
        channel.name,
        channel.is_private,
        extra={"channel_id": channel_id},
    )

    messages = await source.fetch_messages(
        channel_id,
        oldest=oldest,
        latest=latest,
        include_threads=include_threads,
    )

    if not messages:
        logger.info("No qualifying messages in %s, skipping workflow", channel.name)
        return ChannelProcessingResult(
            channel_id=channel_id,
            channel_name=channel.name,
            result=TaskExtractionResult(
                summary=NO_MESSAGES_SUMMARY,
                tasks=[],
                metadata=ResultMetadata(channel_name=channel.name),
            ),
        )

    job_execution_id, result = await _run_extraction(
        messages,
        existing_tasks,
        channel.name,
        f"Slack Channel: {channel.name}",
        f"Processing {len(messages)} messages from {channel.name}",
        workflow=workflow,
        runner_factory=runner_factory,
    )
    return ChannelProcessingResult(
        channel_id=channel_id,
        channel_name=channel.name,
        job_execution_id=job_execution_id,
        result=result,
    )


async def process_messages(
    messages: Sequence[Message],
    existing_tasks: Sequence[ExistingTask] | None = None,
    channel_name: str | None = None,
    *,
    workflow: WorkflowClient | None = None,
    runner_factory: Callable[[WorkflowClient], JobRunner] | None = None,
) -> MessageProcessingResult:
    """Extract tasks from caller-supplied messages, without touching Slack.

    Same job lifecycle and normalization as process_channel_messages. An
    empty message list short-circuits without contacting the workflow.
    """
    if not messages:
        return MessageProcessingResult(
            result=TaskExtractionResult(
                summary=NO_INPUT_SUMMARY,
                tasks=[],
                metadata=ResultMetadata(channel_name=channel_name),
            ),
        )

    description = f"Processing {len(messages)} messages"
    if channel_name:
        description = f"{description} from {channel_name}"
    job_execution_id, result = await _run_extraction(
        messages,
        existing_tasks,
        channel_name,
        "Message Processing",
        description,
        workflow=workflow,
        runner_factory=runner_factory,
    )
    return MessageProcessingResult(job_execution_id=job_execution_id, result=result)


async def _run_extraction(
    messages: Sequence[Message],
    existing_tasks: Sequence[ExistingTask] | None,
    channel_name: str | None,
    title: str,
    description: str,
    *,
    workflow: WorkflowClient | None,
    runner_factory: Callable[[WorkflowClient], JobRunner] | None,
) -> tuple[str, TaskExtractionResult]:
    """Build the payload, run one job to completion, and normalize its results."""
    settings = get_settings()
    started = time.monotonic()
    workflow = workflow or get_workflow_client()
    if runner_factory is not None:
        runner = runner_factory(workflow)
    else:
        runner = JobRunner(
            workflow,
            interval_ms=settings.workflow_poll_interval_ms,
            max_attempts=settings.workflow_poll_max_attempts,
        )

    payload = build_message_payload(messages, existing_tasks, channel_name=channel_name)
    handle, raw = await runner.run(title, description, payload)

    processing_time_ms = int((time.monotonic() - started) * 1000)
    result = normalize_results(raw, len(messages), channel_name, processing_time_ms)

    logger.info(
        "Extracted %d tasks from %s",
        len(result.tasks),
        channel_name or "supplied messages",
        extra={
            "job_execution_id": handle.job_execution_id,
            "total_messages": len(messages),
            "processing_time_ms": processing_time_ms,
        },
    )
    return handle.job_execution_id, result
