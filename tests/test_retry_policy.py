"""
Tests for RetryPolicy and RetryingTask
"""

import asyncio

import pytest

from genqueue.exceptions import EmptyContentError, ProviderError
from genqueue.jobs import Job, JobRegistry, JobStatus, JobType, RetryingTask, RetryPolicy, Scheduler, check_response
from genqueue.providers import GenerationResponse


class TestRetryPolicy:
    """Tests for RetryPolicy"""

    def test_exponential_delay(self):
        policy = RetryPolicy(base_delay=1.0)
        assert [policy.delay(n) for n in range(4)] == [1.0, 2.0, 4.0, 8.0]

    def test_max_delay_caps(self):
        policy = RetryPolicy(base_delay=1.0, max_delay=3.0)
        assert [policy.delay(n) for n in range(4)] == [1.0, 2.0, 3.0, 3.0]

    def test_negative_base_delay(self):
        with pytest.raises(ValueError):
            RetryPolicy(base_delay=-1)


class TestCheckResponse:
    """Tests for check_response"""

    def test_success(self):
        response = GenerationResponse(success=True, content='text')
        assert check_response(response) is response

    def test_reported_failure(self):
        with pytest.raises(ProviderError) as exc_info:
            check_response(GenerationResponse(success=False, error='quota exceeded'))
        assert 'quota exceeded' in str(exc_info.value)

    @pytest.mark.parametrize('content', ['', '   ', '\n\t'])
    def test_empty_content(self, content):
        with pytest.raises(EmptyContentError):
            check_response(GenerationResponse(success=True, content=content))


class TestRetryingTask:
    """Tests for RetryingTask"""

    async def _setup(self, job_id='job-1', max_retries=3):
        registry = JobRegistry()
        scheduler = Scheduler(concurrency=2, interval=0.01, interval_cap=100)
        await registry.create(Job(id=job_id, type=JobType.SINGLE_GENERATION, max_retries=max_retries))
        return registry, scheduler

    @pytest.mark.asyncio
    async def test_success_first_try(self):
        registry, scheduler = await self._setup()

        async def operation():
            return GenerationResponse(success=True, content='hello', tokens_used=7)

        task = RetryingTask('job-1', operation, registry, scheduler, policy=RetryPolicy(0.01))
        task.schedule()
        job = await registry.wait_for_terminal('job-1', timeout=1.0)

        assert job.status == JobStatus.COMPLETED
        assert job.result == 'hello'
        assert job.tokens_used == 7
        assert job.retry_count == 0
        assert job.progress.percentage == 100
        assert task.attempts == 1
        await scheduler.close()

    @pytest.mark.asyncio
    async def test_backoff_delays_double(self):
        registry, scheduler = await self._setup(max_retries=3)
        calls = 0

        async def operation():
            nonlocal calls
            calls += 1
            if calls <= 3:
                raise ProviderError('API error 503: unavailable', status_code=503)
            return GenerationResponse(success=True, content='finally')

        task = RetryingTask('job-1', operation, registry, scheduler, policy=RetryPolicy(0.01), max_retries=3)
        task.schedule()
        job = await registry.wait_for_terminal('job-1', timeout=2.0)

        assert job.status == JobStatus.COMPLETED
        assert job.retry_count == 3
        assert job.last_error == 'Retry 3/3: API error 503: unavailable'
        assert task.delays == [0.01, 0.02, 0.04]
        assert calls == 4
        await scheduler.close()

    @pytest.mark.asyncio
    async def test_exhausted_retries_fail(self):
        registry, scheduler = await self._setup(max_retries=2)
        calls = 0

        async def operation():
            nonlocal calls
            calls += 1
            raise ProviderError('API error 500: broken', status_code=500)

        task = RetryingTask('job-1', operation, registry, scheduler, policy=RetryPolicy(0.001), max_retries=2)
        task.schedule()
        job = await registry.wait_for_terminal('job-1', timeout=2.0)

        assert job.status == JobStatus.FAILED
        assert job.error == 'API error 500: broken'
        assert job.retry_count == 2
        assert calls == 3
        await scheduler.close()

    @pytest.mark.asyncio
    async def test_backoff_does_not_hold_a_slot(self):
        registry = JobRegistry()
        scheduler = Scheduler(concurrency=1, interval=0.01, interval_cap=100)
        for job_id in ('flaky', 'steady'):
            await registry.create(Job(id=job_id, type=JobType.SINGLE_GENERATION))
        finished = []

        async def flaky():
            if not finished:
                finished.append('flaky-failed')
                raise ProviderError('temporary')
            finished.append('flaky')
            return GenerationResponse(success=True, content='flaky')

        async def steady():
            finished.append('steady')
            return GenerationResponse(success=True, content='steady')

        RetryingTask('flaky', flaky, registry, scheduler, policy=RetryPolicy(0.1)).schedule()
        RetryingTask('steady', steady, registry, scheduler, policy=RetryPolicy(0.1)).schedule()

        await registry.wait_for_terminal('flaky', timeout=2.0)
        assert finished == ['flaky-failed', 'steady', 'flaky']
        await scheduler.close()

    @pytest.mark.asyncio
    async def test_cancelled_job_is_skipped(self):
        registry, scheduler = await self._setup()
        calls = 0

        async def operation():
            nonlocal calls
            calls += 1
            return GenerationResponse(success=True, content='x')

        await registry.update('job-1', status=JobStatus.CANCELLED)
        RetryingTask('job-1', operation, registry, scheduler).schedule()
        await scheduler.on_idle()

        assert calls == 0
        assert (await registry.get('job-1')).status == JobStatus.CANCELLED
        await scheduler.close()

    @pytest.mark.asyncio
    async def test_cancel_during_backoff_stops_retries(self):
        registry, scheduler = await self._setup()
        calls = 0

        async def operation():
            nonlocal calls
            calls += 1
            raise ProviderError('down')

        task = RetryingTask('job-1', operation, registry, scheduler, policy=RetryPolicy(0.05))
        task.schedule()
        await scheduler.on_idle()
        assert (await registry.get('job-1')).status == JobStatus.RETRY_SCHEDULED

        await registry.update('job-1', status=JobStatus.CANCELLED)
        await asyncio.sleep(0.1)
        await scheduler.on_idle()

        assert calls == 1
        assert (await registry.get('job-1')).status == JobStatus.CANCELLED
        await scheduler.close()
