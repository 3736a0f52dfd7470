"""
Generation provider contract

The provider is the only network boundary of genqueue: one request in, one
response out. Implementations raise ProviderError on transport or status
failures; the retry policy handles the rest.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional

OPERATION_KINDS = ('generate', 'improve', 'expand', 'rewrite')


@dataclass
class GenerationRequest:
    """Request sent to the generation provider"""
    section: str
    subject: Dict[str, Any] = field(default_factory=dict)
    target: Optional[Dict[str, Any]] = None
    operation: str = 'generate'
    current_content: str = ''
    session_id: Optional[str] = None
    order: Optional[int] = None

    def __post_init__(self):
        if self.operation not in OPERATION_KINDS:
            raise ValueError(
                f"Unsupported operation '{self.operation}'. "
                f"Expected one of: {', '.join(OPERATION_KINDS)}"
            )

    def to_payload(self) -> Dict[str, Any]:
        """JSON body for HTTP providers"""
        payload = {
            'section': self.section,
            'type': self.operation,
            'candidateData': self.subject,
            'jobData': self.target,
            'currentContent': self.current_content,
        }
        if self.session_id is not None:
            payload['sessionId'] = self.session_id
        if self.order is not None:
            payload['order'] = self.order
        return payload


@dataclass
class GenerationResponse:
    """Provider answer"""
    success: bool
    content: str = ''
    tokens_used: int = 0
    error: Optional[str] = None


class GenerationProvider(ABC):
    """Base class for generation providers"""

    @abstractmethod
    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        """
        Perform one generation call.

        Args:
            request: Generation request

        Returns:
            GenerationResponse

        Raises:
            ProviderError: transport failure or non-success status
        """
        pass

    async def close(self) -> None:
        """Release any held resources"""
        pass


class CallableProvider(GenerationProvider):
    """Adapts an async callable ``fn(request) -> GenerationResponse``"""

    def __init__(self, fn: Callable[[GenerationRequest], Awaitable[GenerationResponse]]):
        self._fn = fn

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        return await self._fn(request)
