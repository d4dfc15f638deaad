"""API routes for channel and message processing, documents, and out-of-band job lookup."""

import logging

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from task_extractor.api.schemas import (
    ListChannelsResponse,
    ProcessChannelRequest,
    ProcessChannelResponse,
    ProcessMessagesRequest,
    ProcessMessagesResponse,
)
from task_extractor.errors import (
    JobFailedError,
    JobTimeoutError,
    MessageFetchError,
    RateLimitError,
    TaskExtractorError,
    WorkflowAPIError,
)
from task_extractor.models.workflow import DocumentJobResult
from task_extractor.pipeline import process_channel_messages, process_messages
from task_extractor.slack.client import get_message_source
from task_extractor.workflow.client import get_workflow_client
from task_extractor.workflow.document import process_document

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["tasks"])

MAX_DOCUMENT_BYTES = 50 * 1024 * 1024  # 50MB


@router.get("/channels", response_model=ListChannelsResponse)
async def list_channels() -> ListChannelsResponse:
    """List Slack channels the bot can see."""
    source = await get_message_source()
    try:
        channels = await source.list_channels()
    except TaskExtractorError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc
    return ListChannelsResponse(channels=channels)


@router.post("/process-channel", response_model=ProcessChannelResponse)
async def process_channel(body: ProcessChannelRequest) -> JSONResponse:
    """Run the full extraction pipeline for one channel.

    Failures come back as ``success: false`` with the stage that failed;
    rate limits additionally carry ``retry_after`` and a 429 status.
    """
    try:
        outcome = await process_channel_messages(
            body.channel_id,
            oldest=body.oldest,
            latest=body.latest,
            include_threads=body.include_threads,
            existing_tasks=body.existing_tasks,
        )
    except TaskExtractorError as exc:
        return _failure_response(ProcessChannelResponse, exc, channel_id=body.channel_id)

    response = ProcessChannelResponse(
        success=True,
        channel_id=outcome.channel_id,
        channel_name=outcome.channel_name,
        job_execution_id=outcome.job_execution_id,
        result=outcome.result,
    )
    return JSONResponse(response.model_dump(mode="json"))


@router.post("/process-messages", response_model=ProcessMessagesResponse)
async def process_messages_endpoint(body: ProcessMessagesRequest) -> JSONResponse:
    """Run caller-supplied messages through the extraction job, skipping Slack."""
    try:
        outcome = await process_messages(
            body.messages,
            existing_tasks=body.existing_tasks,
            channel_name=body.channel_name,
        )
    except TaskExtractorError as exc:
        return _failure_response(ProcessMessagesResponse, exc)

    response = ProcessMessagesResponse(
        success=True,
        job_execution_id=outcome.job_execution_id,
        result=outcome.result,
    )
    return JSONResponse(response.model_dump(mode="json"))


@router.get("/jobs/{job_id}/status")
async def job_status(job_id: str) -> dict:
    """Current status of a job, for callers polling out of band."""
    _check_job_id(job_id)
    client = get_workflow_client()
    try:
        status = await client.get_status(job_id)
    except TaskExtractorError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc
    return {"job_execution_id": job_id, "status": status.value}


@router.get("/jobs/{job_id}/results")
async def job_results(job_id: str) -> dict:
    """Raw results of a job, exactly as the workflow returned them."""
    _check_job_id(job_id)
    client = get_workflow_client()
    try:
        return await client.get_results(job_id)
    except TaskExtractorError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc


@router.get("/jobs/{job_id}/audit")
async def job_audit(job_id: str) -> dict:
    _check_job_id(job_id)
    client = get_workflow_client()
    try:
        return await client.get_audit_log(job_id)
    except TaskExtractorError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc


@router.get("/workflow")
async def workflow_schema() -> dict:
    client = get_workflow_client()
    try:
        return await client.get_schema()
    except TaskExtractorError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc


@router.post("/process-document", response_model=DocumentJobResult)
async def process_document_endpoint(
    request: Request,
    file_extension: str = Query("pdf", min_length=1, max_length=10),
    title: str = Query("Document Processing"),
    description: str = Query("Processing uploaded document"),
) -> DocumentJobResult:
    """Upload a raw document body and run it through the workflow."""
    data = await request.body()
    if not data:
        raise HTTPException(status_code=400, detail="Request body must contain the document bytes")
    if len(data) > MAX_DOCUMENT_BYTES:
        raise HTTPException(status_code=413, detail="Document exceeds 50MB limit")

    client = get_workflow_client()
    try:
        return await process_document(
            client, data, file_extension, title=title, description=description
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except TaskExtractorError as exc:
        logger.error("Document processing failed: %s", exc, exc_info=True)
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc


def _check_job_id(job_id: str) -> None:
    """Job execution ids are numeric; reject placeholders like ``JOB_EXECUTION_ID``."""
    if not (job_id.isascii() and job_id.isdigit()):
        raise HTTPException(
            status_code=400,
            detail=f"Invalid job ID {job_id!r}: use a numeric job ID (e.g. 9761)",
        )


def _failure_response(response_model: type[BaseModel], exc: TaskExtractorError, **fields) -> JSONResponse:
    """Render a pipeline error as ``success: false`` with its stage and status."""
    stage = _classify_stage(exc)
    logger.error("Processing failed at %s stage: %s", stage, exc, exc_info=True)
    response = response_model(
        success=False,
        error=f"{stage}: {exc}",
        stage=stage,
        retry_after=exc.retry_after if isinstance(exc, RateLimitError) else None,
        **fields,
    )
    return JSONResponse(response.model_dump(mode="json"), status_code=_status_for(exc))


def _classify_stage(exc: Exception) -> str:
    """Name the pipeline stage an exception came from."""
    if isinstance(exc, MessageFetchError):
        return "slack"
    if isinstance(exc, (JobFailedError, JobTimeoutError)):
        return "job"
    if isinstance(exc, WorkflowAPIError):
        return "workflow"
    if isinstance(exc, RateLimitError):
        return exc.upstream
    return "processing"


def _status_for(exc: Exception) -> int:
    if isinstance(exc, RateLimitError):
        return 429
    if isinstance(exc, JobTimeoutError):
        return 504
    if isinstance(exc, (MessageFetchError, WorkflowAPIError, JobFailedError)):
        return 502
    return 500
