"""Ingestion job records and their partial-update value object."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from chronologicon.event import utc_now


class JobStatus(str, Enum):
    """Lifecycle state of an ingestion job."""

    PENDING = "PENDING"
    """Job record created, the source has not been read yet."""

    PROCESSING = "PROCESSING"
    """The pipeline is streaming the source."""

    COMPLETED = "COMPLETED"
    """The stream was exhausted. Individual lines may still have been rejected."""

    FAILED = "FAILED"
    """The source could not be read or the stream aborted."""

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.PROCESSING, JobStatus.FAILED}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


def new_job_id() -> str:
    """Return a fresh job id of the form ``ingest-job-<10 hex chars>``."""
    return f"ingest-job-{uuid.uuid4().hex[:10]}"


class IngestionJob(BaseModel):
    """Snapshot of one ingestion run.

    Instances are immutable; the tracker replaces the stored snapshot on every
    mutation so readers never observe a counter without its matching errors.
    """

    model_config = {"frozen": True}

    job_id: str = Field(default_factory=new_job_id, description="Unique job identifier.")
    status: JobStatus = Field(default=JobStatus.PENDING)
    source_path: str = Field(description="Origin of the ingested data.")
    total_lines: int = Field(default=0, ge=0)
    processed_lines: int = Field(default=0, ge=0)
    error_lines: int = Field(default=0, ge=0)
    errors: tuple[str, ...] = Field(
        default=(),
        description="One message per rejected line, prefixed with its line number.",
    )
    start_time: datetime = Field(default_factory=utc_now)
    end_time: datetime | None = Field(default=None, description="Set once the job is terminal.")

    def status_report(self) -> dict[str, Any]:
        """Return the job status query result."""
        return {
            "job_id": self.job_id,
            "status": self.status.value,
            "processed_lines": self.processed_lines,
            "error_lines": self.error_lines,
            "total_lines": self.total_lines,
            "errors": list(self.errors),
            "start_time": self.start_time,
            "end_time": self.end_time,
        }


class JobUpdate(BaseModel, frozen=True):
    """Names exactly which job fields a status change also sets.

    Unset fields (``None``) leave the stored value untouched.
    """

    total_lines: int | None = Field(default=None, ge=0)
    processed_lines: int | None = Field(default=None, ge=0)
    error_lines: int | None = Field(default=None, ge=0)
    end_time: datetime | None = None

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)
