"""
Job Registry

In-memory table of job records keyed by job id. It is the single source of
truth for job state and is shared by the scheduler tasks and the callers
waiting on them.

Supports:
- Atomic per-job updates with status transition checks
- Completion notification for waiters
- Pruning of finished and stale records
"""

import asyncio
import dataclasses
import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

from genqueue.exceptions import DuplicateJobError, JobNotFoundError, JobTimeoutError
from genqueue.jobs.models import (
    Job,
    JobProgress,
    JobStatus,
    JobType,
    can_transition,
    utcnow,
)

logger = logging.getLogger(__name__)

_JOB_FIELDS = frozenset(f.name for f in dataclasses.fields(Job)) - {'id', 'created_at'}
_PROGRESS_FIELDS = frozenset(f.name for f in dataclasses.fields(JobProgress))


class JobRegistry:
    """
    Registry of generation jobs.

    Every mutation runs under one lock and compares against the current
    status first, so a slow retry cannot overwrite a newer terminal write.
    Readers get copies of the records.

    Usage:
        registry = JobRegistry()
        await registry.create(job)

        await registry.update(job.id, status=JobStatus.IN_PROGRESS)
        await registry.update_progress(job.id, percentage=50, message='Halfway')

        job = await registry.wait_for_terminal(job.id, timeout=30)
    """

    def __init__(self):
        self._jobs: Dict[str, Job] = {}
        self._done_events: Dict[str, asyncio.Event] = {}
        self._lock = asyncio.Lock()

        # Running totals, kept across clear_* calls
        self._total_jobs = 0

    async def create(self, job: Job) -> Job:
        """
        Register a new job.

        Args:
            job: Job record, usually PENDING

        Returns:
            Copy of the stored job
        """
        async with self._lock:
            if job.id in self._jobs:
                raise DuplicateJobError(f"Job {job.id} already exists")

            stored = job.copy()
            self._jobs[stored.id] = stored
            event = asyncio.Event()
            if stored.is_terminal:
                event.set()
            self._done_events[stored.id] = event
            self._total_jobs += 1

        logger.debug(f"Registered job {job.id} ({job.type.value}, {job.status.value})")
        return stored.copy()

    async def update(self, job_id: str, **fields: Any) -> Optional[Job]:
        """
        Apply field updates to a job atomically.

        The update is dropped when the job is already terminal or when the
        requested status transition is not allowed.

        Args:
            job_id: Job to update
            **fields: Job fields to set. ``progress`` may be a JobProgress
                or a dict merged into the current progress.

        Returns:
            Copy of the updated job, or None if the job is unknown or the
            update was dropped
        """
        unknown = set(fields) - _JOB_FIELDS
        if unknown:
            raise ValueError(f"Unknown job fields: {', '.join(sorted(unknown))}")

        async with self._lock:
            job = self._jobs.get(job_id)
            if not job:
                logger.debug(f"Update for unknown job {job_id} ignored")
                return None

            if job.is_terminal:
                logger.debug(
                    f"Update for job {job_id} dropped: already {job.status.value}"
                )
                return None

            new_status = fields.get('status')
            if new_status is not None:
                new_status = JobStatus(new_status)
                fields['status'] = new_status
                if new_status != job.status and not can_transition(job.status, new_status):
                    logger.debug(
                        f"Update for job {job_id} dropped: "
                        f"{job.status.value} -> {new_status.value} not allowed"
                    )
                    return None

            now = utcnow()
            progress = fields.pop('progress', None)
            if progress is not None:
                job.progress = self._merge_progress(job.progress, progress)

            for key, value in fields.items():
                setattr(job, key, value)

            if new_status == JobStatus.IN_PROGRESS and job.started_at is None:
                job.started_at = now
            if job.is_terminal:
                if job.completed_at is None:
                    job.completed_at = now
                self._done_events[job_id].set()
            job.updated_at = now

            return job.copy()

    async def update_progress(self, job_id: str, **progress: Any) -> Optional[Job]:
        """
        Merge progress fields into a job's progress.

        Args:
            job_id: Job to update
            **progress: percentage, message and/or stage

        Returns:
            Copy of the updated job, or None if unknown or terminal
        """
        unknown = set(progress) - _PROGRESS_FIELDS
        if unknown:
            raise ValueError(f"Unknown progress fields: {', '.join(sorted(unknown))}")

        async with self._lock:
            job = self._jobs.get(job_id)
            if not job or job.is_terminal:
                return None
            job.progress = self._merge_progress(job.progress, progress)
            job.updated_at = utcnow()
            return job.copy()

    async def get(self, job_id: str) -> Optional[Job]:
        """Get a copy of a job, or None if it is not registered"""
        async with self._lock:
            job = self._jobs.get(job_id)
            return job.copy() if job else None

    async def require(self, job_id: str) -> Job:
        """Get a copy of a job or raise JobNotFoundError"""
        job = await self.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    async def wait_for_terminal(self, job_id: str, timeout: Optional[float] = None) -> Job:
        """
        Wait until a job reaches a terminal status.

        Args:
            job_id: Job to wait for
            timeout: Seconds to wait, None to wait forever

        Returns:
            Copy of the terminal job

        Raises:
            JobNotFoundError: job is not registered
            JobTimeoutError: timeout elapsed first; the job is left running
        """
        async with self._lock:
            event = self._done_events.get(job_id)
        if event is None:
            raise JobNotFoundError(job_id)

        try:
            await asyncio.wait_for(event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            raise JobTimeoutError(job_id, timeout) from None

        job = await self.get(job_id)
        if job is None:
            # Removed by a clear_* call after finishing
            raise JobNotFoundError(job_id)
        return job

    async def remove(self, job_id: str) -> bool:
        """Remove a job record. Returns True if it existed."""
        async with self._lock:
            return self._remove_locked(job_id)

    async def list_jobs(
        self,
        status: Optional[JobStatus] = None,
        job_type: Optional[JobType] = None
    ) -> List[Job]:
        """List copies of jobs, optionally filtered by status and type"""
        async with self._lock:
            return [
                job.copy()
                for job in self._jobs.values()
                if (status is None or job.status == status)
                and (job_type is None or job.type == job_type)
            ]

    async def clear_completed(self) -> int:
        """Remove COMPLETED jobs. Returns the number removed."""
        return await self._clear_status(JobStatus.COMPLETED)

    async def clear_failed(self) -> int:
        """Remove FAILED jobs. Returns the number removed."""
        return await self._clear_status(JobStatus.FAILED)

    async def clear_all(self) -> int:
        """Remove every job record and reset totals"""
        async with self._lock:
            count = len(self._jobs)
            self._jobs.clear()
            self._done_events.clear()
            self._total_jobs = 0
        logger.info(f"Cleared {count} jobs")
        return count

    async def prune_stale_retries(self, max_age: float) -> int:
        """
        Remove RETRY_SCHEDULED jobs not updated within ``max_age`` seconds.

        Returns:
            Number of jobs pruned
        """
        cutoff = utcnow() - timedelta(seconds=max_age)
        async with self._lock:
            stale = [
                job_id
                for job_id, job in self._jobs.items()
                if job.status == JobStatus.RETRY_SCHEDULED and job.updated_at < cutoff
            ]
            for job_id in stale:
                self._remove_locked(job_id)

        if stale:
            logger.info(f"Pruned {len(stale)} stale retry jobs")
        return len(stale)

    async def stats(self) -> Dict[str, Any]:
        """Get registry statistics"""
        async with self._lock:
            by_status: Dict[str, int] = {status.value: 0 for status in JobStatus}
            for job in self._jobs.values():
                by_status[job.status.value] += 1

            completed = by_status[JobStatus.COMPLETED.value]
            failed = by_status[JobStatus.FAILED.value]
            finished = completed + failed
            return {
                'total_jobs': self._total_jobs,
                'tracked_jobs': len(self._jobs),
                'active_jobs': (
                    by_status[JobStatus.PENDING.value]
                    + by_status[JobStatus.IN_PROGRESS.value]
                    + by_status[JobStatus.RETRY_SCHEDULED.value]
                ),
                'completed_jobs': completed,
                'failed_jobs': failed,
                'success_rate': (completed / finished) * 100 if finished else 0.0,
                'by_status': by_status,
            }

    def __len__(self) -> int:
        return len(self._jobs)

    async def _clear_status(self, status: JobStatus) -> int:
        async with self._lock:
            job_ids = [job_id for job_id, job in self._jobs.items() if job.status == status]
            for job_id in job_ids:
                self._remove_locked(job_id)
        logger.info(f"Cleared {len(job_ids)} {status.value.lower()} jobs")
        return len(job_ids)

    def _remove_locked(self, job_id: str) -> bool:
        job = self._jobs.pop(job_id, None)
        event = self._done_events.pop(job_id, None)
        if event is not None and not event.is_set():
            # Wake any waiter; it will see the job as gone
            event.set()
        return job is not None

    @staticmethod
    def _merge_progress(current: JobProgress, update: Any) -> JobProgress:
        if isinstance(update, JobProgress):
            return JobProgress(update.percentage, update.message, update.stage)
        merged = dataclasses.asdict(current)
        merged.update(update)
        return JobProgress(**merged)
