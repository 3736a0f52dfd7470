"""
Generation Queue Service

Caller-facing API for single and batch generation tasks. Submitting returns a
job id right away; callers then wait on the registry for the outcome.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Sequence

from genqueue.config.genqueue_config import GenQueueConfig
from genqueue.exceptions import GenerationFailedError
from genqueue.jobs.models import Job, JobProgress, JobStatus, JobType, generate_job_id
from genqueue.jobs.registry import JobRegistry
from genqueue.jobs.retry import RetryingTask, RetryPolicy
from genqueue.jobs.scheduler import Scheduler
from genqueue.providers.base import GenerationProvider, GenerationRequest

logger = logging.getLogger(__name__)


@dataclass
class TaskResult:
    """Outcome of one job as seen by a waiting caller"""
    success: bool
    processing_time: float
    data: Optional[str] = None
    error: Optional[str] = None
    tokens_used: int = 0
    job_id: Optional[str] = None

    @classmethod
    def from_job(cls, job: Job, waited: float) -> 'TaskResult':
        processing_time = job.processing_time
        if processing_time is None:
            processing_time = waited

        if job.status == JobStatus.COMPLETED:
            return cls(
                success=True,
                data=job.result,
                tokens_used=job.tokens_used,
                processing_time=processing_time,
                job_id=job.id
            )
        if job.status == JobStatus.CANCELLED:
            return cls(
                success=False,
                error=f"Job {job.id} was cancelled",
                processing_time=processing_time,
                job_id=job.id
            )
        return cls(
            success=False,
            error=job.error or 'Job failed',
            processing_time=processing_time,
            job_id=job.id
        )


class GenerationQueueService:
    """
    Queue for single generation tasks.

    Usage:
        service = GenerationQueueService(provider)

        job_id = await service.add_task(request, priority=JobPriority.HIGH)
        result = await service.wait_for_job(job_id, timeout=30)

        job_ids = await service.add_batch(requests)
        results = await service.wait_for_batch(job_ids)
    """

    def __init__(
        self,
        provider: GenerationProvider,
        registry: Optional[JobRegistry] = None,
        scheduler: Optional[Scheduler] = None,
        retry_policy: Optional[RetryPolicy] = None,
        config: Optional[GenQueueConfig] = None
    ):
        self.config = config or GenQueueConfig()
        queue_config = self.config.get_queue_config()
        retry_config = self.config.get_retry_config()

        self.provider = provider
        self.registry = registry or JobRegistry()
        self.scheduler = scheduler or Scheduler(
            concurrency=queue_config.get('concurrency', 5),
            interval=queue_config.get('interval', 1.0),
            interval_cap=queue_config.get('interval_cap'),
            name='generation-queue'
        )
        self.retry_policy = retry_policy or RetryPolicy(
            base_delay=retry_config.get('base_delay', 1.0),
            max_delay=retry_config.get('max_delay')
        )

        self.default_priority = queue_config.get('default_priority', 5)
        self.default_max_retries = queue_config.get('max_retries', 3)
        self.wait_timeout = queue_config.get('wait_timeout', 30.0)
        self.batch_wait_timeout = queue_config.get('batch_wait_timeout', 60.0)
        self.stale_retry_max_age = self.config.get('registry.stale_retry_max_age', 3600)

    async def add_task(
        self,
        request: GenerationRequest,
        priority: Optional[int] = None,
        max_retries: Optional[int] = None
    ) -> str:
        """
        Submit a generation task.

        Args:
            request: Generation request
            priority: Scheduling hint, higher first
            max_retries: Retries after the first failed attempt

        Returns:
            Job id
        """
        priority = self.default_priority if priority is None else priority
        max_retries = self.default_max_retries if max_retries is None else max_retries

        job_id = generate_job_id(JobType.SINGLE_GENERATION, request.section)
        await self.registry.create(Job(
            id=job_id,
            type=JobType.SINGLE_GENERATION,
            status=JobStatus.PENDING,
            progress=JobProgress(
                percentage=0,
                message=f"Queued for processing: {request.section}",
                stage='queued'
            ),
            max_retries=max_retries,
            priority=priority,
            metadata={
                'section': request.section,
                'operation': request.operation,
                'session_id': request.session_id,
            }
        ))

        RetryingTask(
            job_id=job_id,
            operation=lambda: self.provider.generate(request),
            registry=self.registry,
            scheduler=self.scheduler,
            policy=self.retry_policy,
            max_retries=max_retries,
            priority=priority,
            label=request.section
        ).schedule()

        logger.info(f"Enqueued job {job_id} for section {request.section}")
        return job_id

    async def wait_for_job(self, job_id: str, timeout: Optional[float] = None) -> TaskResult:
        """
        Wait for a job to finish.

        Args:
            job_id: Job to wait for
            timeout: Seconds to wait (default from queue.wait_timeout)

        Returns:
            TaskResult; failed and cancelled jobs give success=False

        Raises:
            JobNotFoundError: unknown job id
            JobTimeoutError: timeout elapsed; the job keeps running
        """
        timeout = self.wait_timeout if timeout is None else timeout
        started = time.monotonic()
        job = await self.registry.wait_for_terminal(job_id, timeout=timeout)
        return TaskResult.from_job(job, waited=time.monotonic() - started)

    async def add_batch(
        self,
        requests: Sequence[GenerationRequest],
        priority: Optional[int] = None,
        max_retries: Optional[int] = None
    ) -> List[str]:
        """
        Submit several tasks independently.

        Returns:
            Job ids in submission order
        """
        logger.info(f"Adding batch of {len(requests)} tasks to queue")
        job_ids = []
        for request in requests:
            job_ids.append(await self.add_task(request, priority, max_retries))
        return job_ids

    async def wait_for_batch(
        self,
        job_ids: Sequence[str],
        timeout: Optional[float] = None
    ) -> List[TaskResult]:
        """
        Wait for several jobs in parallel.

        Returns:
            Results in the same order as ``job_ids``
        """
        timeout = self.batch_wait_timeout if timeout is None else timeout
        logger.info(f"Waiting for batch of {len(job_ids)} jobs to complete...")

        results = await asyncio.gather(
            *(self.wait_for_job(job_id, timeout) for job_id in job_ids)
        )

        successful = sum(1 for result in results if result.success)
        logger.info(f"Batch completed: {successful}/{len(job_ids)} successful")
        return list(results)

    async def cancel_job(self, job_id: str) -> bool:
        """
        Mark a job CANCELLED.

        An attempt already talking to the provider is not interrupted; its
        result is discarded when it arrives.

        Returns:
            True if the job was cancelled
        """
        job = await self.registry.update(
            job_id,
            status=JobStatus.CANCELLED,
            progress={'message': 'Cancelled', 'stage': 'cancelled'}
        )
        if job is None:
            logger.info(f"Job {job_id} not cancelled (unknown or already finished)")
            return False

        logger.info(f"Job {job_id} cancelled")
        return True

    async def get_job(self, job_id: str) -> Optional[Job]:
        return await self.registry.get(job_id)

    async def get_queue_stats(self) -> Dict[str, Any]:
        """Get scheduler and registry statistics"""
        registry_stats = await self.registry.stats()
        return {
            'queue_size': self.scheduler.size,
            'pending': self.scheduler.pending,
            'concurrency': self.scheduler.concurrency,
            'is_idle': self.scheduler.is_idle,
            'total_jobs': registry_stats['total_jobs'],
            'active_jobs': registry_stats['active_jobs'],
            'completed_jobs': registry_stats['completed_jobs'],
            'failed_jobs': registry_stats['failed_jobs'],
            'success_rate': registry_stats['success_rate'],
        }

    def get_health(self) -> Dict[str, Any]:
        """Get queue health"""
        return {
            'healthy': True,
            'queued': self.scheduler.size,
            'running': self.scheduler.pending,
            'concurrency_limit': self.scheduler.concurrency,
            'paused': self.scheduler.is_paused,
        }

    def pause(self) -> None:
        """Stop starting new tasks; queued tasks are kept"""
        self.scheduler.pause()

    def resume(self) -> None:
        self.scheduler.resume()

    async def clear_completed(self) -> int:
        return await self.registry.clear_completed()

    async def clear_failed(self) -> int:
        return await self.registry.clear_failed()

    async def prune_stale_retries(self, max_age: Optional[float] = None) -> int:
        max_age = self.stale_retry_max_age if max_age is None else max_age
        return await self.registry.prune_stale_retries(max_age)

    async def close(self) -> None:
        """Stop the scheduler and release the provider"""
        await self.scheduler.close()
        await self.provider.close()


async def generate_content(
    service: GenerationQueueService,
    request: GenerationRequest,
    priority: Optional[int] = None,
    timeout: Optional[float] = None
) -> str:
    """
    Convenience function: submit one request and wait for its content.

    Raises:
        GenerationFailedError: the job failed or was cancelled
    """
    job_id = await service.add_task(request, priority)
    result = await service.wait_for_job(job_id, timeout)
    if not result.success:
        raise GenerationFailedError(result.error or 'AI generation failed')
    return result.data or ''


async def generate_content_batch(
    service: GenerationQueueService,
    requests: Sequence[GenerationRequest],
    priority: Optional[int] = None,
    timeout: Optional[float] = None
) -> List[str]:
    """
    Convenience function: submit requests as one session and wait for all.

    Every request is stamped with a shared ``batch-session-<millis>`` id.

    Raises:
        GenerationFailedError: any job failed or was cancelled
    """
    session_id = f"batch-session-{int(time.time() * 1000)}"
    stamped = [replace(request, session_id=session_id) for request in requests]

    job_ids = await service.add_batch(stamped, priority)
    results = await service.wait_for_batch(job_ids, timeout)

    failed = [result for result in results if not result.success]
    if failed:
        raise GenerationFailedError(failed[0].error or 'AI generation failed')
    return [result.data or '' for result in results]
