"""
genqueue Jobs Module

Provides async job execution for generation calls.

Components:
- JobRegistry: In-memory job table with lifecycle checks
- Scheduler: Bounded-concurrency, rate-limited worker pool
- RetryingTask / RetryPolicy: Retries with exponential backoff
- IntervalRateLimiter: Rolling-window start limit
"""

from .models import (
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    Job,
    JobPriority,
    JobProgress,
    JobStatus,
    JobType,
    can_transition,
    generate_job_id
)
from .rate_limiter import IntervalRateLimiter
from .registry import JobRegistry
from .retry import RetryPolicy, RetryingTask, check_response
from .scheduler import Scheduler

__all__ = [
    # Models
    'ALLOWED_TRANSITIONS',
    'TERMINAL_STATUSES',
    'Job',
    'JobPriority',
    'JobProgress',
    'JobStatus',
    'JobType',
    'can_transition',
    'generate_job_id',

    # Execution
    'IntervalRateLimiter',
    'JobRegistry',
    'RetryPolicy',
    'RetryingTask',
    'Scheduler',
    'check_response'
]
