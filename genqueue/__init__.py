"""
genqueue - Generation Job Orchestration

This library runs long text-generation calls against an external provider
under a concurrency ceiling and a rate limit, tracks every call as a job,
retries transient failures with exponential backoff, and builds
multi-section documents from independently generated sections.

Basic usage:
    from genqueue import GenerationQueueService, GenerationRequest, HTTPGenerationProvider

    provider = HTTPGenerationProvider(base_url='http://localhost:3000')
    service = GenerationQueueService(provider)

    job_id = await service.add_task(GenerationRequest(section='PROFESSIONAL SUMMARY'))
    result = await service.wait_for_job(job_id)
    print(result.data)

    # Multi-section documents
    from genqueue import DocumentPipeline, SubjectData

    pipeline = DocumentPipeline(provider)
    run = await pipeline.generate_document(SubjectData(full_name='Jane Doe'))
"""

import logging
from typing import Optional

from genqueue.config.genqueue_config import GenQueueConfig
from genqueue.documents import DocumentPipeline, PipelineRun, SectionRequest, SectionResult, SubjectData, TargetContext
from genqueue.jobs import Job, JobPriority, JobRegistry, JobStatus, JobType, RetryPolicy, Scheduler
from genqueue.providers import GenerationRequest, GenerationResponse, HTTPGenerationProvider
from genqueue.services import GenerationQueueService, TaskResult


def configure_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """
    Configure root logging from the ``logging`` configuration section.

    Args:
        level: Override for logging.level
        log_file: Override for logging.file
    """
    logging_config = GenQueueConfig().get_logging_config()
    level = (level or logging_config.get('level') or 'INFO').upper()
    log_file = log_file or logging_config.get('file')

    kwargs = {
        'level': getattr(logging, level),
        'format': logging_config.get('format', '%(asctime)s - %(name)s - %(levelname)s - %(message)s'),
    }
    if log_file:
        kwargs['filename'] = log_file
    logging.basicConfig(**kwargs)


__all__ = [
    'DocumentPipeline',
    'GenQueueConfig',
    'GenerationQueueService',
    'GenerationRequest',
    'GenerationResponse',
    'HTTPGenerationProvider',
    'Job',
    'JobPriority',
    'JobRegistry',
    'JobStatus',
    'JobType',
    'PipelineRun',
    'RetryPolicy',
    'Scheduler',
    'SectionRequest',
    'SectionResult',
    'SubjectData',
    'TargetContext',
    'TaskResult',
    'configure_logging'
]

__version__ = '1.0.0'
