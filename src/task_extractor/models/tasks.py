"""Task extraction models returned by the workflow and the pipeline."""

from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class Urgency(str, Enum):
    """Urgency levels the workflow assigns to extracted tasks."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ExtractedTask(BaseModel):
    """A single actionable task traced back to its source message."""

    model_config = ConfigDict(populate_by_name=True)

    task: str = Field(min_length=1)
    owner: str = "Unassigned"
    urgency: Urgency = Urgency.MEDIUM
    deadline: str | None = None
    source_message_ts: str = Field(
        min_length=1,
        validation_alias=AliasChoices(
            "source_message_ts", "sourceMessageTimestamp", "source_message_timestamp"
        ),
    )
    context: str | None = None
    category: str | None = None

    @field_validator("urgency", mode="before")
    @classmethod
    def _coerce_urgency(cls, value: object) -> object:
        """Accept any casing; unknown labels fall back to medium."""
        if isinstance(value, str):
            lowered = value.strip().lower()
            return lowered if lowered in {u.value for u in Urgency} else Urgency.MEDIUM
        if value is None:
            return Urgency.MEDIUM
        return value

    @field_validator("owner", mode="before")
    @classmethod
    def _default_owner(cls, value: object) -> object:
        if value is None or (isinstance(value, str) and not value.strip()):
            return "Unassigned"
        return value


class ReprioritizationRecommendation(BaseModel):
    """Workflow suggestion to move an existing task to a different priority."""

    task_id: str = ""
    current_priority: str = ""
    recommended_priority: str = ""
    reason: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def _stringify(cls, value: object) -> object:
        return "" if value is None else str(value)


class ResultMetadata(BaseModel):
    """Bookkeeping attached to every extraction result."""

    total_messages: int = 0
    messages_with_tasks: int = 0
    processing_time_ms: int = 0
    channel_name: str | None = None


class TaskExtractionResult(BaseModel):
    """Normalized output of one extraction run. Always well-formed."""

    summary: str
    tasks: list[ExtractedTask] = []
    reprioritization_recommendations: list[ReprioritizationRecommendation] = []
    metadata: ResultMetadata = Field(default_factory=ResultMetadata)


class ExistingTask(BaseModel):
    """A task the caller already tracks, passed to the workflow as context."""

    title: str
    priority: str = "medium"
    status: str = "todo"


class ChannelProcessingResult(BaseModel):
    """What the orchestration entry point hands back to callers."""

    channel_id: str
    channel_name: str
    job_execution_id: str | None = None  # None when short-circuited
    result: TaskExtractionResult


class MessageProcessingResult(BaseModel):
    """Outcome of extracting tasks from caller-supplied messages."""

    job_execution_id: str | None = None  # None when short-circuited
    result: TaskExtractionResult
