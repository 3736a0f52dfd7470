"""
genqueue exceptions

Errors raised by the job registry, the submission API and the providers.
Task failures are reported through job records and result objects; only
caller-side problems (unknown job, waiter timeout) are raised.
"""

from typing import Optional


class GenQueueError(Exception):
    """Base exception for genqueue"""
    pass


class ConfigurationError(GenQueueError):
    """Raised when the configuration is missing or invalid"""
    pass


class ProviderError(GenQueueError):
    """Raised when the generation provider call fails (transient task error)"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class EmptyContentError(ProviderError):
    """Raised when the provider answered successfully but without content"""
    pass


class JobNotFoundError(GenQueueError, KeyError):
    """Raised when a job id is not present in the registry"""

    def __init__(self, job_id: str):
        super().__init__(f"Job {job_id} not found")
        self.job_id = job_id

    def __str__(self) -> str:
        return self.args[0]


class JobTimeoutError(GenQueueError, TimeoutError):
    """Raised when a caller stops waiting for a job. The job keeps running."""

    def __init__(self, job_id: str, timeout: float):
        super().__init__(f"Job {job_id} timeout after {timeout}s")
        self.job_id = job_id
        self.timeout = timeout


class DuplicateJobError(GenQueueError):
    """Raised when a job id is registered twice"""
    pass


class GenerationFailedError(GenQueueError):
    """Raised by the convenience helpers when a job ended without content"""
    pass
