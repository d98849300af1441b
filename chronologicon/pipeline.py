"""Streaming ingestion pipeline for pipe-delimited event files.

``IngestionPipeline.start`` counts the lines of a source, registers a job with
the tracker and hands the actual work to a background ``asyncio.Task``; the
caller gets the job id back straight away and polls the tracker for progress.

Per job, the background task:

    1. Moves the job from PENDING to PROCESSING.
    2. Streams the source line by line, skipping blank lines.
    3. Parses each line; valid events are upserted into the repository,
       rejected lines (parse failures or unknown parent ids) are recorded as
       ``"Line {n}: {message}"`` and processing continues.
    4. Marks the job COMPLETED at the end of the stream, or FAILED if the
       source becomes unreadable or anything unexpected aborts the stream.

Example usage:
    ```python
    pipeline = IngestionPipeline(repository=InMemoryEventRepository())
    job_id = await pipeline.start("events.txt")
    job = await pipeline.wait(job_id)
    print(job.status_report())
    ```
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, TextIO

from chronologicon.errors import FatalIngestionError, JobNotFoundError, ReferentialIntegrityError
from chronologicon.job import IngestionJob, JobStatus
from chronologicon.parser import RejectedLine, parse_event_line
from chronologicon.storage.interfaces import EventRepositoryInterface
from chronologicon.tracker import IngestionJobTracker

logger = logging.getLogger(__name__)


# Records end at "\n" only; a stray "\r" inside a field stays part of its line.
LINE_TERMINATOR = "\n"
READ_BATCH_BYTES = 64 * 1024


def count_lines(source_path: str) -> int:
    """Count the lines of a file, blank ones included, splitting on ``\\n`` only."""
    with open(source_path, "rb") as fh:
        return sum(1 for _ in fh)


def open_source(source_path: str) -> TextIO:
    """Open a source for streaming with the same line splitting as ``count_lines``."""
    return open(source_path, "r", encoding="utf-8", newline=LINE_TERMINATOR)


class IngestionPipeline:
    """Runs one background ingestion task per ``start`` call.

    Several jobs may run at once. They share the repository and the tracker
    but nothing else; each task owns its job record and line counter.

    Attributes:
        repository: Destination for validated events.
        tracker: Job store holding status and counters.
        progress_interval: Log a progress record every this many lines (0 disables).
    """

    def __init__(
        self,
        repository: EventRepositoryInterface,
        tracker: IngestionJobTracker | None = None,
        progress_interval: int = 1000,
    ) -> None:
        self.repository = repository
        self.tracker = tracker if tracker is not None else IngestionJobTracker()
        self.progress_interval = progress_interval
        self._tasks: dict[str, asyncio.Task] = {}

    async def start(self, source_path: str | Path) -> str:
        """Register a job for ``source_path`` and start processing it in the background.

        A source that cannot be opened still yields a job id; that job is
        already FAILED with the reason as its only error.
        """
        path = str(source_path)
        try:
            total_lines = await asyncio.to_thread(count_lines, path)
        except OSError as e:
            job = await self.tracker.create(path)
            await self.tracker.mark_failed(job.job_id, f"Cannot read source {path}: {e}")
            logger.error("Ingestion job %s failed before processing: cannot read %s: %s", job.job_id, path, e)
            return job.job_id

        job = await self.tracker.create(path, total_lines=total_lines)
        job_id = job.job_id
        task = asyncio.create_task(self._process(job_id, path), name=f"ingest-{job_id}")
        self._tasks[job_id] = task
        task.add_done_callback(lambda _: self._tasks.pop(job_id, None))
        logger.info("Ingestion job %s started for %s (%d lines)", job_id, path, total_lines)
        return job_id

    async def wait(self, job_id: str) -> IngestionJob:
        """Wait until a job's background task finishes and return the final snapshot.

        Cancelling the waiter does not cancel the ingestion task.
        """
        task = self._tasks.get(job_id)
        if task is not None:
            await asyncio.wait({task})
        job = await self.tracker.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    async def run(self, source_path: str | Path) -> IngestionJob:
        """Start a job and wait for it to finish."""
        return await self.wait(await self.start(source_path))

    async def get_status(self, job_id: str) -> dict[str, Any] | None:
        """Return the job status report, or None if the job is unknown."""
        job = await self.tracker.get(job_id)
        return job.status_report() if job is not None else None

    async def close(self) -> None:
        """Cancel outstanding jobs and wait for their tasks to unwind.

        Jobs whose task was cancelled before it got to run are marked FAILED here.
        """
        pending = dict(self._tasks)
        for task in pending.values():
            task.cancel()
        await asyncio.gather(*pending.values(), return_exceptions=True)
        self._tasks.clear()
        for job_id in pending:
            job = await self.tracker.get(job_id)
            if job is not None and not job.status.is_terminal:
                await self.tracker.mark_failed(job_id, "Ingestion cancelled")

    async def _process(self, job_id: str, path: str) -> None:
        """Failure handler around the stream: any abort leaves the job FAILED."""
        try:
            await self._stream(job_id, path)
        except asyncio.CancelledError:
            await self.tracker.mark_failed(job_id, "Ingestion cancelled")
            logger.warning("Ingestion job %s cancelled", job_id)
            raise
        except FatalIngestionError as e:
            await self.tracker.mark_failed(job_id, str(e))
            logger.error("Ingestion job %s failed: %s", job_id, e)
        except Exception as e:  # pylint: disable=broad-except
            await self.tracker.mark_failed(job_id, f"Unexpected ingestion error: {e}")
            logger.exception("Ingestion job %s aborted by unexpected error", job_id)

    async def _stream(self, job_id: str, path: str) -> None:
        await self.tracker.update_status(job_id, JobStatus.PROCESSING)
        line_number = 0
        try:
            fh = await asyncio.to_thread(open_source, path)
        except OSError as e:
            raise FatalIngestionError(f"Cannot read source {path}: {e}") from e
        try:
            while True:
                try:
                    batch = await asyncio.to_thread(fh.readlines, READ_BATCH_BYTES)
                except (OSError, UnicodeDecodeError) as e:
                    raise FatalIngestionError(f"Source {path} became unreadable after line {line_number}: {e}") from e
                if not batch:
                    break
                for raw_line in batch:
                    line_number += 1
                    line = raw_line.rstrip("\r\n")
                    if not line.strip():
                        continue
                    await self._ingest_line(job_id, line, line_number)
                    if self.progress_interval and line_number % self.progress_interval == 0:
                        await self._log_progress(job_id, line_number)
                    # Let status queries and other jobs run between lines.
                    await asyncio.sleep(0)
        finally:
            fh.close()

        job = await self.tracker.update_status(job_id, JobStatus.COMPLETED)
        logger.info(
            "Ingestion job %s completed: %d stored, %d rejected, %d lines",
            job_id,
            job.processed_lines,
            job.error_lines,
            job.total_lines,
        )

    async def _log_progress(self, job_id: str, line_number: int) -> None:
        job = await self.tracker.get(job_id)
        if job is not None:
            logger.info(
                "Ingestion job %s: line %d/%d, %d stored, %d rejected",
                job_id,
                line_number,
                job.total_lines,
                job.processed_lines,
                job.error_lines,
            )

    async def _ingest_line(self, job_id: str, line: str, line_number: int) -> None:
        result = parse_event_line(line, line_number)
        if isinstance(result, RejectedLine):
            await self._reject(job_id, line_number, result.message)
            return
        try:
            await self.repository.upsert(result.event)
        except ReferentialIntegrityError as e:
            await self._reject(job_id, line_number, str(e))
            return
        await self.tracker.increment_processed(job_id)

    async def _reject(self, job_id: str, line_number: int, message: str) -> None:
        entry = f"Line {line_number}: {message}"
        await self.tracker.append_error(job_id, entry)
        logger.debug("Ingestion job %s rejected %s", job_id, entry)
