"""Data models and enums for the task extraction pipeline."""

from task_extractor.models.slack import Channel, Message, UserIdentity
from task_extractor.models.tasks import (
    ChannelProcessingResult,
    ExistingTask,
    ExtractedTask,
    MessageProcessingResult,
    ReprioritizationRecommendation,
    ResultMetadata,
    TaskExtractionResult,
    Urgency,
)
from task_extractor.models.workflow import DocumentJobResult, JobHandle, JobStatus, UploadTarget

__all__ = [
    "Channel",
    "Message",
    "UserIdentity",
    "ChannelProcessingResult",
    "ExistingTask",
    "ExtractedTask",
    "MessageProcessingResult",
    "ReprioritizationRecommendation",
    "ResultMetadata",
    "TaskExtractionResult",
    "Urgency",
    "DocumentJobResult",
    "JobHandle",
    "JobStatus",
    "UploadTarget",
]
