"""
genqueue providers

Connections to the external text-generation service.
"""

from .base import (
    CallableProvider,
    GenerationProvider,
    GenerationRequest,
    GenerationResponse,
    OPERATION_KINDS
)
from .http_provider import HTTPGenerationProvider

__all__ = [
    'CallableProvider',
    'GenerationProvider',
    'GenerationRequest',
    'GenerationResponse',
    'HTTPGenerationProvider',
    'OPERATION_KINDS'
]
