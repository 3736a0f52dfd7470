"""
Retry / Backoff Policy

Wraps one job's provider call with bounded retries. Each attempt runs in its
own scheduler slot. The backoff wait is a scheduler timer, so it holds no slot
and is dropped when the scheduler closes.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional

from genqueue.exceptions import EmptyContentError, ProviderError
from genqueue.jobs.models import JobStatus
from genqueue.jobs.registry import JobRegistry
from genqueue.jobs.scheduler import Scheduler

logger = logging.getLogger(__name__)

Operation = Callable[[], Awaitable[Any]]


class RetryPolicy:
    """
    Exponential backoff: ``delay(n) = base_delay * 2 ** n``.

    Args:
        base_delay: Delay before the first retry, in seconds
        max_delay: Optional upper bound on any single delay
    """

    def __init__(self, base_delay: float = 1.0, max_delay: Optional[float] = None):
        if base_delay < 0:
            raise ValueError("base_delay must not be negative")
        self.base_delay = base_delay
        self.max_delay = max_delay

    def delay(self, retry_count: int) -> float:
        """Delay to wait after the failed attempt with the given retry count"""
        delay = self.base_delay * (2 ** retry_count)
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return delay

    def __repr__(self) -> str:
        return f"RetryPolicy(base_delay={self.base_delay}, max_delay={self.max_delay})"


def check_response(response: Any) -> Any:
    """
    Validate a provider response.

    A response fails when it reports ``success=False`` or when its content is
    empty after trimming.

    Returns:
        The response

    Raises:
        ProviderError: response reports failure
        EmptyContentError: response has no content
    """
    if not getattr(response, 'success', True):
        raise ProviderError(getattr(response, 'error', None) or 'Generation failed')

    content = response.content
    if not isinstance(content, str) or not content.strip():
        raise EmptyContentError('Generated content is empty')
    return response


def describe_error(error: BaseException) -> str:
    message = str(error)
    return message if message else type(error).__name__


class RetryingTask:
    """
    One job's attempts against the provider.

    Usage:
        task = RetryingTask(job_id, operation, registry, scheduler,
                            policy=RetryPolicy(1.0), max_retries=3)
        task.schedule()

        job = await registry.wait_for_terminal(job_id)
    """

    def __init__(
        self,
        job_id: str,
        operation: Operation,
        registry: JobRegistry,
        scheduler: Scheduler,
        policy: Optional[RetryPolicy] = None,
        max_retries: int = 3,
        priority: int = 0,
        label: Optional[str] = None
    ):
        self.job_id = job_id
        self.max_retries = max_retries
        self.priority = priority
        self.label = label or job_id
        self.policy = policy or RetryPolicy()

        self._operation = operation
        self._registry = registry
        self._scheduler = scheduler

        self.retry_count = 0
        self.attempts = 0
        self.delays: List[float] = []

    def schedule(self) -> None:
        """Submit the next attempt to the scheduler"""
        self._scheduler.submit(self._attempt, priority=self.priority)

    async def _attempt(self) -> None:
        job = await self._registry.get(self.job_id)
        if job is None or job.is_terminal:
            logger.info(
                f"Skipping {self.label} ({self.job_id}): "
                f"{job.status.value if job else 'removed'}"
            )
            return

        started = await self._registry.update(
            self.job_id,
            status=JobStatus.IN_PROGRESS,
            progress={
                'percentage': 20,
                'message': f"Generating {self.label}...",
                'stage': 'ai_generation',
            }
        )
        if started is None:
            return

        self.attempts += 1
        logger.info(f"Processing {self.label} ({self.job_id}), attempt {self.attempts}")

        try:
            response = check_response(await self._operation())
        except asyncio.CancelledError:
            raise
        except Exception as e:
            await self._handle_failure(e)
            return

        completed = await self._registry.update(
            self.job_id,
            status=JobStatus.COMPLETED,
            result=response.content,
            tokens_used=getattr(response, 'tokens_used', 0) or 0,
            progress={
                'percentage': 100,
                'message': f"{self.label} completed successfully",
                'stage': 'completed',
            }
        )
        if completed is None:
            logger.info(f"Result for {self.label} ({self.job_id}) discarded: job already finished")
        else:
            logger.info(f"Completed {self.label} ({self.job_id})")

    async def _handle_failure(self, error: Exception) -> None:
        message = describe_error(error)
        logger.warning(f"{self.label} ({self.job_id}) failed: {message}")

        if self.retry_count < self.max_retries:
            attempt_no = self.retry_count + 1
            delay = self.policy.delay(self.retry_count)
            updated = await self._registry.update(
                self.job_id,
                status=JobStatus.RETRY_SCHEDULED,
                retry_count=attempt_no,
                last_error=f"Retry {attempt_no}/{self.max_retries}: {message}",
                progress={
                    'percentage': 50,
                    'message': f"Retrying... ({attempt_no}/{self.max_retries})",
                    'stage': 'retrying',
                }
            )
            if updated is None:
                return

            self.retry_count = attempt_no
            self.delays.append(delay)
            logger.info(
                f"Retrying {self.label} ({self.job_id}) "
                f"({attempt_no}/{self.max_retries}) in {delay}s"
            )
            self._scheduler.call_later(delay, self._attempt, priority=self.priority)
            return

        await self._registry.update(
            self.job_id,
            status=JobStatus.FAILED,
            error=message,
            last_error=message,
            progress={
                'percentage': 0,
                'message': f"Failed: {message}",
                'stage': 'failed',
            }
        )
        logger.error(
            f"{self.label} ({self.job_id}) failed after {self.attempts} attempts: {message}"
        )
