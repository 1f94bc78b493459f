"""Background job management for repository analysis runs."""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..errors import describe_failure

logger = logging.getLogger(__name__)

# Named fields a run may write; anything else is rejected
PROGRESS_FIELDS = {
    "repo_metadata",
    "selection_summary",
    "statistics",
    "indexing",
    "error_message",
}


class JobStatus(str, Enum):
    """Job status states."""

    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = {JobStatus.COMPLETED, JobStatus.PARTIAL, JobStatus.FAILED, JobStatus.CANCELLED}


@dataclass
class AnalysisJob:
    """Represents one analysis run."""

    job_id: str
    owner: str
    name: str
    status: JobStatus
    created_at: float
    ref: Optional[str] = None
    started_at: Optional[float] = None
    completed_at: Optional[float] = None
    progress: float = 0.0
    progress_message: str = ""
    fields: Dict[str, Any] = field(default_factory=dict)
    task: Optional[asyncio.Task] = None

    @property
    def repo(self) -> str:
        return f"{self.owner}/{self.name}"

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class ProgressReporter:
    """Writes named progress fields of one job, never the whole record."""

    def __init__(self, manager: "AnalysisJobManager", job_id: str):
        self.manager = manager
        self.job_id = job_id

    async def update(
        self,
        progress: Optional[float] = None,
        progress_message: Optional[str] = None,
        **fields: Any,
    ) -> None:
        await self.manager.update_progress(
            self.job_id, progress=progress, progress_message=progress_message, **fields
        )


class AnalysisJobManager:
    """Manages background analysis jobs."""

    def __init__(
        self,
        max_finished_jobs: int = 100,
        on_evict: Optional[Callable[[str], None]] = None,
    ):
        """Initialize job manager.

        Args:
            max_finished_jobs: Finished jobs kept before the oldest are dropped
            on_evict: Called with the id of every dropped job
        """
        self.jobs: Dict[str, AnalysisJob] = {}
        self.max_finished_jobs = max_finished_jobs
        self.on_evict = on_evict
        self._lock = asyncio.Lock()

    def _evict_finished(self) -> None:
        """Drop the oldest finished jobs beyond the retention limit (lock held)."""
        finished = sorted(
            (job for job in self.jobs.values() if job.is_terminal),
            key=lambda job: job.completed_at or 0.0,
        )
        for job in finished[: max(len(finished) - self.max_finished_jobs, 0)]:
            del self.jobs[job.job_id]
            logger.debug(f"Evicted finished job {job.job_id}")
            if self.on_evict:
                self.on_evict(job.job_id)

    def create_job(self, owner: str, name: str, ref: Optional[str] = None) -> AnalysisJob:
        """Create a new analysis job.

        Args:
            owner: Repository owner
            name: Repository name
            ref: Branch, tag or sha

        Returns:
            Created job
        """
        job_id = str(uuid.uuid4())[:8]
        job = AnalysisJob(
            job_id=job_id,
            owner=owner,
            name=name,
            ref=ref,
            status=JobStatus.QUEUED,
            created_at=time.time(),
            progress_message="Queued",
        )
        self.jobs[job_id] = job
        logger.info(f"Created analysis job {job_id} for {job.repo}")
        return job

    def get_job(self, job_id: str) -> Optional[AnalysisJob]:
        return self.jobs.get(job_id)

    def list_jobs(self) -> List[AnalysisJob]:
        return list(self.jobs.values())

    async def update_progress(
        self,
        job_id: str,
        progress: Optional[float] = None,
        progress_message: Optional[str] = None,
        **fields: Any,
    ) -> None:
        """Update some fields of a running job.

        Updates to finished jobs are ignored, so a late write can never move a
        job out of its terminal state.

        Args:
            job_id: Job identifier
            progress: Percentage complete
            progress_message: Short human-readable stage description
            **fields: Named record fields (repo_metadata, selection_summary, ...)

        Raises:
            ValueError: If an unknown field name is given
        """
        unknown = set(fields) - PROGRESS_FIELDS
        if unknown:
            raise ValueError(f"Unknown progress fields: {sorted(unknown)}")

        async with self._lock:
            job = self.jobs.get(job_id)
            if not job or job.is_terminal:
                return

            if progress is not None:
                job.progress = progress
            if progress_message is not None:
                job.progress_message = progress_message
            job.fields.update(fields)

    async def mark_started(self, job_id: str) -> None:
        async with self._lock:
            job = self.jobs.get(job_id)
            if job and job.status == JobStatus.QUEUED:
                job.status = JobStatus.RUNNING
                job.started_at = time.time()
                job.progress_message = "Starting analysis"
                logger.info(f"Job {job_id} started")

    async def mark_completed(self, job_id: str, partial: bool = False) -> None:
        """Mark job as completed, or partially completed after a deadline.

        Args:
            job_id: Job identifier
            partial: Whether the run stopped early with incomplete results
        """
        async with self._lock:
            job = self.jobs.get(job_id)
            if not job or job.is_terminal:
                return
            job.status = JobStatus.PARTIAL if partial else JobStatus.COMPLETED
            job.completed_at = time.time()
            job.progress = 100.0
            job.progress_message = (
                "Analysis stopped at the time limit with partial results"
                if partial
                else "Analysis complete"
            )
            logger.info(f"Job {job_id} {job.status.value}")
            self._evict_finished()

    async def mark_failed(self, job_id: str, error: str) -> None:
        """Mark job as failed.

        Args:
            job_id: Job identifier
            error: Human-readable error message
        """
        async with self._lock:
            job = self.jobs.get(job_id)
            if not job or job.is_terminal:
                return
            job.status = JobStatus.FAILED
            job.completed_at = time.time()
            job.progress_message = error
            job.fields["error_message"] = error
            logger.error(f"Job {job_id} failed: {error}")
            self._evict_finished()

    async def cancel_job(self, job_id: str) -> bool:
        """Cancel a queued or running job.

        Args:
            job_id: Job identifier

        Returns:
            True if job was cancelled, False if not found or already done
        """
        async with self._lock:
            job = self.jobs.get(job_id)
            if not job or job.is_terminal:
                return False

            if job.task and not job.task.done():
                job.task.cancel()

            job.status = JobStatus.CANCELLED
            job.completed_at = time.time()
            job.progress_message = "Analysis cancelled"
            logger.info(f"Job {job_id} cancelled")
            self._evict_finished()
            return True

    def start_job(
        self, job_id: str, runner: Callable[[ProgressReporter], Awaitable[Any]]
    ) -> asyncio.Task:
        """Run a job in the background.

        The runner receives a progress reporter; if its result has a truthy
        ``partial`` attribute the job ends as ``partial``. Any exception ends
        the job as ``failed`` with a readable message.

        Args:
            job_id: Job identifier
            runner: Coroutine function doing the work

        Returns:
            The background task
        """
        reporter = ProgressReporter(self, job_id)

        async def run() -> None:
            await self.mark_started(job_id)
            try:
                result = await runner(reporter)
            except asyncio.CancelledError:
                await self.cancel_job(job_id)
                raise
            except Exception as e:
                logger.error(f"Job {job_id} raised: {e}", exc_info=True)
                await self.mark_failed(job_id, describe_failure(e))
                return
            await self.mark_completed(job_id, partial=bool(getattr(result, "partial", False)))

        task = asyncio.create_task(run())
        self.jobs[job_id].task = task
        return task

    def get_status_dict(self, job: AnalysisJob) -> dict:
        """Convert job to status dictionary.

        Args:
            job: Job to convert

        Returns:
            Dictionary representation
        """
        result = {
            "job_id": job.job_id,
            "repo": job.repo,
            "ref": job.ref,
            "status": job.status.value,
            "created_at": job.created_at,
            "progress": round(job.progress, 2),
            "progress_message": job.progress_message,
        }
        result.update(job.fields)

        if job.started_at:
            result["started_at"] = job.started_at
            if job.status == JobStatus.RUNNING:
                result["elapsed_seconds"] = round(time.time() - job.started_at, 2)

        if job.completed_at:
            result["completed_at"] = job.completed_at
            if job.started_at:
                result["total_seconds"] = round(job.completed_at - job.started_at, 2)

        return result
