"""Job store owning ingestion job lifecycle and progress counters.

Every mutation happens under one lock and replaces the stored immutable
``IngestionJob`` snapshot, so a status query always sees a consistent record:
``error_lines`` and ``errors`` change together or not at all.
"""

import asyncio
import logging

from chronologicon.errors import InvalidJobTransitionError, JobNotFoundError
from chronologicon.event import utc_now
from chronologicon.job import ALLOWED_TRANSITIONS, IngestionJob, JobStatus, JobUpdate

logger = logging.getLogger(__name__)


class IngestionJobTracker:
    """In-memory store of ingestion jobs keyed by job id.

    The tracker is the only synchronization surface between a running
    pipeline and callers polling for status. Each job has a single writer
    (its pipeline run, or the launcher's failure handler).

    Example:
        ```python
        tracker = IngestionJobTracker()
        job = await tracker.create("events.txt", total_lines=10)
        await tracker.update_status(job.job_id, JobStatus.PROCESSING)
        await tracker.increment_processed(job.job_id)
        snapshot = await tracker.get(job.job_id)
        ```
    """

    def __init__(self) -> None:
        self._jobs: dict[str, IngestionJob] = {}
        self._lock = asyncio.Lock()

    async def create(self, source_path: str, total_lines: int = 0) -> IngestionJob:
        """Create and store a new job in ``PENDING``."""
        job = IngestionJob(source_path=source_path, total_lines=total_lines)
        async with self._lock:
            self._jobs[job.job_id] = job
        logger.debug("Created ingestion job %s for %s (%d lines)", job.job_id, source_path, total_lines)
        return job

    async def get(self, job_id: str) -> IngestionJob | None:
        """Return the current snapshot of a job, or None if unknown."""
        async with self._lock:
            return self._jobs.get(job_id)

    async def list_jobs(self) -> list[IngestionJob]:
        """Return snapshots of all jobs, oldest first."""
        async with self._lock:
            return sorted(self._jobs.values(), key=lambda job: job.start_time)

    async def update_status(
        self,
        job_id: str,
        status: JobStatus,
        update: JobUpdate | None = None,
    ) -> IngestionJob:
        """Move a job to ``status`` and apply the fields named by ``update``.

        Terminal statuses stamp ``end_time`` unless the update sets one.

        Raises:
            JobNotFoundError: No job with this id.
            InvalidJobTransitionError: The state machine forbids the change.
        """
        changes = update.changes() if update is not None else {}
        async with self._lock:
            job = self._require(job_id)
            if status not in ALLOWED_TRANSITIONS[job.status]:
                raise InvalidJobTransitionError(f"Job {job_id} cannot move from {job.status.value} to {status.value}")
            if status.is_terminal and "end_time" not in changes:
                changes["end_time"] = utc_now()
            updated = job.model_copy(update={**changes, "status": status})
            self._jobs[job_id] = updated
        logger.debug("Job %s: %s -> %s", job_id, job.status.value, status.value)
        return updated

    async def append_error(self, job_id: str, message: str) -> IngestionJob:
        """Record one rejected line: append the message and bump ``error_lines``."""
        async with self._lock:
            job = self._require_mutable(job_id)
            updated = job.model_copy(
                update={
                    "errors": (*job.errors, message),
                    "error_lines": job.error_lines + 1,
                }
            )
            self._jobs[job_id] = updated
        return updated

    async def increment_processed(self, job_id: str) -> IngestionJob:
        """Record one successfully stored line."""
        async with self._lock:
            job = self._require_mutable(job_id)
            updated = job.model_copy(update={"processed_lines": job.processed_lines + 1})
            self._jobs[job_id] = updated
        return updated

    async def mark_failed(self, job_id: str, message: str) -> IngestionJob:
        """Append a fatal message as the last error and move the job to ``FAILED``.

        Both changes are applied in one step.
        """
        async with self._lock:
            job = self._require(job_id)
            if JobStatus.FAILED not in ALLOWED_TRANSITIONS[job.status]:
                raise InvalidJobTransitionError(f"Job {job_id} cannot fail from {job.status.value}")
            updated = job.model_copy(
                update={
                    "status": JobStatus.FAILED,
                    "errors": (*job.errors, message),
                    "end_time": utc_now(),
                }
            )
            self._jobs[job_id] = updated
        logger.debug("Job %s failed: %s", job_id, message)
        return updated

    def _require(self, job_id: str) -> IngestionJob:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def _require_mutable(self, job_id: str) -> IngestionJob:
        job = self._require(job_id)
        if job.status.is_terminal:
            raise InvalidJobTransitionError(f"Job {job_id} is {job.status.value} and can no longer change")
        return job
