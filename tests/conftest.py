"""
Shared fixtures for genqueue tests
"""

import asyncio
from typing import Dict, Iterable, List, Optional

import pytest

from genqueue.config.genqueue_config import GenQueueConfig
from genqueue.documents import DocumentPipeline
from genqueue.exceptions import ProviderError
from genqueue.jobs import JobRegistry, JobStatus, RetryPolicy, Scheduler
from genqueue.providers import GenerationProvider, GenerationRequest, GenerationResponse
from genqueue.services import GenerationQueueService


class FakeProvider(GenerationProvider):
    """
    Scripted provider.

    - ``delays``: per-section sleep before answering
    - ``failures``: per-section count of failures before succeeding
    - ``always_fail``: sections that never succeed
    - ``empty``: per-section count of empty answers before succeeding
    """

    def __init__(
        self,
        delay: float = 0.0,
        delays: Optional[Dict[str, float]] = None,
        failures: Optional[Dict[str, int]] = None,
        always_fail: Iterable[str] = (),
        empty: Optional[Dict[str, int]] = None,
        tokens: int = 10,
        registry: Optional[JobRegistry] = None
    ):
        self.delay = delay
        self.delays = dict(delays or {})
        self.failures = dict(failures or {})
        self.always_fail = set(always_fail)
        self.empty = dict(empty or {})
        self.tokens = tokens
        self.registry = registry

        self.calls: List[str] = []
        self.completed: List[str] = []
        self.active = 0
        self.max_active = 0
        self.max_in_progress = 0

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        self.calls.append(request.section)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        if self.registry is not None:
            in_progress = await self.registry.list_jobs(status=JobStatus.IN_PROGRESS)
            self.max_in_progress = max(self.max_in_progress, len(in_progress))
        try:
            await asyncio.sleep(self.delays.get(request.section, self.delay))

            if request.section in self.always_fail:
                raise ProviderError("API error 500: Internal Server Error", status_code=500)

            if self.failures.get(request.section, 0) > 0:
                self.failures[request.section] -= 1
                raise ProviderError("API error 503: Service Unavailable", status_code=503)

            if self.empty.get(request.section, 0) > 0:
                self.empty[request.section] -= 1
                return GenerationResponse(success=True, content="   ")

            self.completed.append(request.section)
            return GenerationResponse(
                success=True,
                content=f"Content for {request.section}",
                tokens_used=self.tokens
            )
        finally:
            self.active -= 1

    def call_count(self, section: str) -> int:
        return self.calls.count(section)


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep the user's ~/.genqueue out of the tests and reset the singleton"""
    monkeypatch.setenv('HOME', str(tmp_path))
    GenQueueConfig.reset()
    yield
    GenQueueConfig.reset()


@pytest.fixture
def fast_policy():
    return RetryPolicy(base_delay=0.001)


@pytest.fixture
def make_service(fast_policy):
    """Factory for a queue service with a fast scheduler"""
    def factory(provider, concurrency=5, interval_cap=1000, registry=None):
        registry = registry or JobRegistry()
        if getattr(provider, 'registry', False) is None:
            provider.registry = registry
        scheduler = Scheduler(
            concurrency=concurrency,
            interval=0.01,
            interval_cap=interval_cap,
            name='test-queue'
        )
        return GenerationQueueService(
            provider,
            registry=registry,
            scheduler=scheduler,
            retry_policy=fast_policy
        )
    return factory


@pytest.fixture
def make_pipeline(fast_policy):
    """Factory for a document pipeline with a fast scheduler"""
    def factory(provider, concurrency=3, registry=None):
        registry = registry or JobRegistry()
        if getattr(provider, 'registry', False) is None:
            provider.registry = registry
        scheduler = Scheduler(
            concurrency=concurrency,
            interval=0.01,
            interval_cap=1000,
            name='test-pipeline'
        )
        return DocumentPipeline(
            provider,
            registry=registry,
            scheduler=scheduler,
            retry_policy=fast_policy
        )
    return factory


@pytest.fixture
def subject_data():
    return {
        'fullName': 'Jane Doe',
        'currentTitle': 'Data Engineer',
        'skills': ['Python', 'SQL', 'Spark'],
        'experience': [
            {
                'company': 'Acme',
                'title': 'Senior Data Engineer',
                'startDate': '2020-01',
                'endDate': 'present',
                'responsibilities': 'Pipelines'
            },
            {
                'company': 'Globex',
                'title': 'Data Engineer',
                'startDate': '2017-03',
                'endDate': '2019-12',
                'responsibilities': 'ETL'
            }
        ],
        'education': ['MSc Computer Science'],
        'languages': ['English', 'French']
    }
