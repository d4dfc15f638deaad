"""Request and response bodies for the HTTP API."""

from pydantic import BaseModel, Field

from task_extractor.models.slack import Channel, Message
from task_extractor.models.tasks import ExistingTask, TaskExtractionResult


class ProcessChannelRequest(BaseModel):
    channel_id: str = Field(min_length=1)
    oldest: str | None = None  # Slack ts lower bound
    latest: str | None = None  # Slack ts upper bound
    include_threads: bool = False
    existing_tasks: list[ExistingTask] = []


class ProcessChannelResponse(BaseModel):
    success: bool
    channel_id: str
    channel_name: str = "unknown"
    job_execution_id: str | None = None
    result: TaskExtractionResult | None = None
    error: str | None = None
    stage: str | None = None  # Pipeline stage that failed
    retry_after: int | None = None


class ProcessMessagesRequest(BaseModel):
    messages: list[Message] = Field(min_length=1)
    existing_tasks: list[ExistingTask] = []
    channel_name: str | None = None  # Only used to label the job and instructions


class ProcessMessagesResponse(BaseModel):
    success: bool
    job_execution_id: str | None = None
    result: TaskExtractionResult | None = None
    error: str | None = None
    stage: str | None = None
    retry_after: int | None = None


class ListChannelsResponse(BaseModel):
    channels: list[Channel]


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    services: dict[str, str]
    timestamp: str
