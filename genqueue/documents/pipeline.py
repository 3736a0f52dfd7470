"""
Document Section Pipeline

Generates a multi-section document by running every section as its own job
and putting the results back together by section order.

Supports:
- Fixed plus experience-driven section planning
- A lower concurrency ceiling than ad-hoc tasks
- Per-section retries with exponential backoff
- A master job tracking overall progress
- Partial results when some sections fail
"""

import asyncio
import logging
import random
import string
import time
from typing import Any, Dict, List, Optional, Sequence

from genqueue.config.genqueue_config import GenQueueConfig
from genqueue.documents.models import PipelineRun, SectionRequest, SectionResult, SubjectData, TargetContext
from genqueue.documents.sections import build_section_plan
from genqueue.exceptions import JobNotFoundError, JobTimeoutError
from genqueue.jobs.models import Job, JobProgress, JobStatus, JobType, generate_job_id
from genqueue.jobs.registry import JobRegistry
from genqueue.jobs.retry import RetryingTask, RetryPolicy
from genqueue.jobs.scheduler import Scheduler
from genqueue.providers.base import GenerationProvider, GenerationRequest

logger = logging.getLogger(__name__)


def new_session_id() -> str:
    suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"cf-{int(time.time() * 1000)}-{suffix}"


class DocumentPipeline:
    """
    Orchestrates section generation for one document at a time per call.

    Usage:
        pipeline = DocumentPipeline(provider)

        run = await pipeline.generate_document(subject, target)
        if run.success:
            for section in run.sections:
                print(section.title, section.content)
        else:
            print(run.errors)
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
        pipeline_config = self.config.get_pipeline_config()
        retry_config = self.config.get_retry_config()

        self.provider = provider
        self.registry = registry or JobRegistry()
        self.scheduler = scheduler or Scheduler(
            concurrency=pipeline_config.get('concurrency', 3),
            interval=pipeline_config.get('interval', 1.0),
            interval_cap=pipeline_config.get('interval_cap'),
            name='document-pipeline'
        )
        self.retry_policy = retry_policy or RetryPolicy(
            base_delay=retry_config.get('base_delay', 1.0),
            max_delay=retry_config.get('max_delay')
        )

        self.default_max_retries = pipeline_config.get('max_retries', 2)
        self.max_experiences = pipeline_config.get('max_experiences', 5)
        self.default_experiences = pipeline_config.get('default_experiences', 3)
        self.master_priority = pipeline_config.get('master_priority', 10)
        self.section_timeout = pipeline_config.get('section_timeout')

    def build_sections(
        self,
        subject: SubjectData,
        target: Optional[TargetContext] = None
    ) -> List[SectionRequest]:
        """Plan the sections for a subject using the configured limits"""
        return build_section_plan(
            subject,
            target,
            max_experiences=self.max_experiences,
            default_experiences=self.default_experiences
        )

    async def generate_document(
        self,
        subject: SubjectData,
        target: Optional[TargetContext] = None,
        max_retries: Optional[int] = None,
        timeout: Optional[float] = None,
        sections: Optional[Sequence[SectionRequest]] = None,
        session_id: Optional[str] = None
    ) -> PipelineRun:
        """
        Generate every section of a document.

        Args:
            subject: Subject data
            target: Optional target context
            max_retries: Retries per section (default from pipeline.max_retries)
            timeout: Per-section wait limit in seconds; None waits until the
                section finishes
            sections: Pre-built sections to use instead of the planned ones
            session_id: Session id to use instead of a generated one

        Returns:
            PipelineRun with sections sorted by order
        """
        max_retries = self.default_max_retries if max_retries is None else max_retries
        timeout = self.section_timeout if timeout is None else timeout
        session_id = session_id or new_session_id()
        started = time.monotonic()

        plan = list(sections) if sections is not None else self.build_sections(subject, target)
        self._check_orders(plan)
        plan.sort(key=lambda section: section.order)

        logger.info(
            f"Starting document generation - Session: {session_id}, "
            f"subject: {subject.full_name}, "
            f"target: {(target.title if target else None) or 'General Position'}, "
            f"sections: {len(plan)}"
        )

        master_job_id = await self._create_master_job(session_id, subject, plan, max_retries)

        results: List[SectionResult] = []
        errors: List[str] = []
        submitted: List[str] = []
        try:
            for section in plan:
                submitted.append(
                    await self._submit_section(section, session_id, master_job_id, max_retries)
                )

            waiters = [
                self._await_section(section, job_id, timeout)
                for section, job_id in zip(plan, submitted)
            ]
            for finished in asyncio.as_completed(waiters):
                result = await finished
                results.append(result)

                if result.success:
                    logger.info(f"Section {result.title} completed")
                else:
                    errors.append(f"{result.title}: {result.error or 'Unknown error'}")
                    logger.error(f"Section {result.title} failed: {result.error}")

                await self.registry.update_progress(
                    master_job_id,
                    percentage=round(len(results) / len(plan) * 100) if plan else 100,
                    message=f"Completed {len(results)}/{len(plan)} sections",
                    stage='generation'
                )

        except Exception as e:
            logger.exception(f"Document generation failed: {e}")
            for job_id in submitted:
                await self.registry.update(job_id, status=JobStatus.CANCELLED)
            errors.append(str(e) or type(e).__name__)
            await self.registry.update(
                master_job_id,
                status=JobStatus.FAILED,
                error=str(e) or type(e).__name__
            )
            results.sort(key=lambda section: section.order)
            return PipelineRun(
                session_id=session_id,
                sections=results,
                total_time=time.monotonic() - started,
                total_tokens=sum(r.tokens_used for r in results if r.success),
                errors=errors,
                master_job_id=master_job_id
            )

        results.sort(key=lambda section: section.order)
        total_time = time.monotonic() - started
        total_tokens = sum(result.tokens_used for result in results if result.success)
        failed = sum(1 for result in results if not result.success)

        logger.info(
            f"Generation summary for {session_id}: "
            f"{len(results) - failed}/{len(plan)} successful, {failed} failed, "
            f"{total_time:.2f}s, {total_tokens} tokens"
        )

        if failed == 0:
            await self.registry.update(
                master_job_id,
                status=JobStatus.COMPLETED,
                result=results,
                tokens_used=total_tokens,
                progress={'percentage': 100, 'message': 'All sections generated', 'stage': 'completed'}
            )
        else:
            await self.registry.update(
                master_job_id,
                status=JobStatus.FAILED,
                error=f"{failed} sections failed to generate",
                tokens_used=total_tokens,
                progress={'percentage': 100, 'stage': 'failed'}
            )

        return PipelineRun(
            session_id=session_id,
            sections=results,
            total_time=total_time,
            total_tokens=total_tokens,
            errors=errors,
            master_job_id=master_job_id
        )

    def get_queue_stats(self) -> Dict[str, Any]:
        return {
            'pending': self.scheduler.pending,
            'size': self.scheduler.size,
            'is_paused': self.scheduler.is_paused,
            'concurrency': self.scheduler.concurrency,
        }

    def pause(self) -> None:
        self.scheduler.pause()

    def resume(self) -> None:
        self.scheduler.resume()

    def clear(self) -> int:
        """Drop queued sections that have not started"""
        return self.scheduler.clear()

    async def close(self) -> None:
        await self.scheduler.close()
        await self.provider.close()

    async def _create_master_job(
        self,
        session_id: str,
        subject: SubjectData,
        plan: List[SectionRequest],
        max_retries: int
    ) -> str:
        master_job_id = generate_job_id(JobType.DOCUMENT_PIPELINE_MASTER, session_id)
        await self.registry.create(Job(
            id=master_job_id,
            type=JobType.DOCUMENT_PIPELINE_MASTER,
            status=JobStatus.PENDING,
            progress=JobProgress(
                percentage=0,
                message=f"Generating {len(plan)} sections for {subject.full_name}",
                stage='initialization'
            ),
            max_retries=max_retries,
            priority=self.master_priority,
            metadata={
                'session_id': session_id,
                'subject_name': subject.full_name,
                'total_sections': len(plan),
            }
        ))
        await self.registry.update(master_job_id, status=JobStatus.IN_PROGRESS)
        return master_job_id

    async def _submit_section(
        self,
        section: SectionRequest,
        session_id: str,
        master_job_id: str,
        max_retries: int
    ) -> str:
        job_id = generate_job_id(JobType.SINGLE_GENERATION, section.title)
        await self.registry.create(Job(
            id=job_id,
            type=JobType.SINGLE_GENERATION,
            progress=JobProgress(
                percentage=0,
                message=f"Queued for processing: {section.title}",
                stage='queued'
            ),
            max_retries=max_retries,
            priority=0,
            metadata={
                'session_id': session_id,
                'section': section.title,
                'order': section.order,
                'master_job_id': master_job_id,
            }
        ))

        request = GenerationRequest(
            section=section.title,
            subject=section.payload.subject.to_dict(),
            target=section.payload.target.to_dict() if section.payload.target else None,
            operation='generate',
            session_id=session_id,
            order=section.order
        )

        RetryingTask(
            job_id=job_id,
            operation=lambda: self.provider.generate(request),
            registry=self.registry,
            scheduler=self.scheduler,
            policy=self.retry_policy,
            max_retries=max_retries,
            label=f"{section.title} (order {section.order})"
        ).schedule()
        return job_id

    async def _await_section(
        self,
        section: SectionRequest,
        job_id: str,
        timeout: Optional[float]
    ) -> SectionResult:
        try:
            job = await self.registry.wait_for_terminal(job_id, timeout=timeout)
        except (JobNotFoundError, JobTimeoutError) as e:
            return SectionResult(
                order=section.order,
                title=section.title,
                success=False,
                error=str(e),
                job_id=job_id
            )

        if job.status == JobStatus.COMPLETED:
            return SectionResult(
                order=section.order,
                title=section.title,
                content=job.result,
                success=True,
                processing_time=job.processing_time,
                tokens_used=job.tokens_used,
                job_id=job_id
            )

        if job.status == JobStatus.CANCELLED:
            error = f"Job {job_id} was cancelled"
        else:
            error = job.error or 'Section generation failed'
        return SectionResult(
            order=section.order,
            title=section.title,
            content='',
            success=False,
            error=error,
            processing_time=job.processing_time,
            job_id=job_id
        )

    @staticmethod
    def _check_orders(plan: Sequence[SectionRequest]) -> None:
        seen = set()
        for section in plan:
            if section.order in seen:
                raise ValueError(f"Duplicate section order {section.order} ({section.title})")
            seen.add(section.order)
