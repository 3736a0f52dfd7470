"""
Job models

Domain types for generation jobs: status, type, progress and the job record
kept by the registry.
"""

import copy
import random
import string
import time
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any, Dict, FrozenSet, Optional


class JobStatus(str, Enum):
    """Job lifecycle status"""
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    RETRY_SCHEDULED = "RETRY_SCHEDULED"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class JobType(str, Enum):
    """Kind of work a job tracks"""
    SINGLE_GENERATION = "single-generation"
    DOCUMENT_PIPELINE_MASTER = "document-pipeline-master"


class JobPriority(IntEnum):
    """Common priority levels. Any integer is accepted; higher runs first."""
    LOW = 0
    NORMAL = 5
    HIGH = 10


TERMINAL_STATUSES: FrozenSet[JobStatus] = frozenset({
    JobStatus.COMPLETED,
    JobStatus.FAILED,
    JobStatus.CANCELLED,
})

ALLOWED_TRANSITIONS: Dict[JobStatus, FrozenSet[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.IN_PROGRESS, JobStatus.CANCELLED}),
    JobStatus.IN_PROGRESS: frozenset({
        JobStatus.RETRY_SCHEDULED,
        JobStatus.COMPLETED,
        JobStatus.FAILED,
        JobStatus.CANCELLED,
    }),
    JobStatus.RETRY_SCHEDULED: frozenset({
        JobStatus.IN_PROGRESS,
        JobStatus.FAILED,
        JobStatus.CANCELLED,
    }),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
    JobStatus.CANCELLED: frozenset(),
}


def can_transition(current: JobStatus, new: JobStatus) -> bool:
    """Check whether a job may move from ``current`` to ``new``"""
    return new in ALLOWED_TRANSITIONS[current]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_job_id(job_type: JobType, discriminator: Optional[str] = None) -> str:
    """
    Build a job id from a type tag and an optional discriminator.

    Format: ``<discriminator or type>_<epoch millis>_<9 random chars>``

    Args:
        job_type: Kind of job
        discriminator: Section name, session id or similar

    Returns:
        Job id
    """
    prefix = discriminator or job_type.value
    prefix = prefix.strip().replace(' ', '-').lower() or job_type.value
    suffix = ''.join(random.choices(_ID_ALPHABET, k=9))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


@dataclass
class JobProgress:
    """Progress snapshot shown to callers"""
    percentage: float = 0.0
    message: str = ""
    stage: Optional[str] = None

    def __post_init__(self):
        self.percentage = min(max(float(self.percentage), 0.0), 100.0)


@dataclass
class Job:
    """A trackable unit of scheduled work"""
    id: str
    type: JobType
    status: JobStatus = JobStatus.PENDING
    progress: JobProgress = field(default_factory=JobProgress)
    retry_count: int = 0
    max_retries: int = 3
    priority: int = JobPriority.NORMAL
    result: Any = None
    error: Optional[str] = None
    last_error: Optional[str] = None
    tokens_used: int = 0
    created_at: datetime = field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    updated_at: datetime = field(default_factory=utcnow)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def processing_time(self) -> Optional[float]:
        """Seconds between first start and completion, if both are known"""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def copy(self) -> 'Job':
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['type'] = self.type.value
        data['status'] = self.status.value
        for key in ('created_at', 'started_at', 'completed_at', 'updated_at'):
            value = data[key]
            data[key] = value.isoformat() if value else None
        return data
