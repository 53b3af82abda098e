from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict


class JobStatus(str, Enum):
    """Generation job status.

    Allowed transitions: queued -> running, running -> succeeded | failed | queued,
    queued -> cancelled.
    """

    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCEEDED, JobStatus.FAILED, JobStatus.CANCELLED)


class JobDTO(BaseModel):
    """Job response."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    status: JobStatus
    business_name: str
    industry: str
    modules: list[str] = []
    attempts: int = 0
    max_attempts: int = 1
    progress: int = 0
    priority: int = 0
    error: str | None = None
    project_id: str | None = None
    output_path: str | None = None
    spec: dict[str, Any] = {}
    created_at: datetime | None = None
    updated_at: datetime | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None


class SubmitResult(BaseModel):
    job_id: str
    status: JobStatus
    duplicate: bool = False


class QueueStatusDTO(BaseModel):
    """Queue overview for operators."""

    counts: dict[str, int]
    stream_length: int = 0
    pending: int = 0
    delayed: int = 0
