"""Workflow job models: handles, statuses, and upload targets."""

from enum import Enum

from pydantic import BaseModel


class JobStatus(str, Enum):
    """Job execution status as reported by the workflow API."""

    IN_PROGRESS = "IN PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self is not JobStatus.IN_PROGRESS

    @classmethod
    def parse(cls, value: str | None) -> "JobStatus | None":
        """Map a raw status string to a member, or None if unrecognized.

        Accepts "IN PROGRESS", "IN_PROGRESS", "in-progress" and similar.
        """
        if not value:
            return None
        normalized = value.strip().upper().replace("_", " ").replace("-", " ")
        for member in cls:
            if member.value == normalized:
                return member
        return None


class JobHandle(BaseModel):
    """Opaque correlation key for one job execution."""

    job_execution_id: str

    def __str__(self) -> str:
        return self.job_execution_id


class UploadTarget(BaseModel):
    """One-time upload destination plus the permanent reference URL."""

    presigned_url: str
    file_url: str


class DocumentJobResult(BaseModel):
    """Outcome of a binary-artifact (document) job."""

    job_execution_id: str
    file_url: str
    outputs: dict = {}  # Output fields with {value, ...} wrappers removed
    raw: dict = {}
