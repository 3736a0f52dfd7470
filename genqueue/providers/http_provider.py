"""
HTTP Generation Provider

Calls a text-generation endpoint over HTTP with httpx. The endpoint takes a
JSON body built from GenerationRequest and answers with
``{"success": true, "content": "...", "tokensUsed": 123}``. Endpoints that
answer with ``suggestion`` instead of ``content`` are accepted too.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from genqueue.exceptions import EmptyContentError, ProviderError
from genqueue.providers.base import GenerationProvider, GenerationRequest, GenerationResponse

logger = logging.getLogger(__name__)


class HTTPGenerationProvider(GenerationProvider):
    """
    Provider backed by an HTTP endpoint.

    Usage:
        provider = HTTPGenerationProvider(
            base_url='http://localhost:3000',
            endpoint='/api/openai-responses',
            token='secret'
        )
        response = await provider.generate(request)
        await provider.close()
    """

    def __init__(
        self,
        base_url: str,
        endpoint: str = '/api/openai-responses',
        token: Optional[str] = None,
        timeout: float = 30.0,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = base_url.rstrip('/')
        self.endpoint = endpoint if endpoint.startswith('/') else f"/{endpoint}"
        self.timeout = timeout

        request_headers = {'Content-Type': 'application/json'}
        if token:
            request_headers['Authorization'] = f"Bearer {token}"
        request_headers.update(headers or {})

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=request_headers,
            timeout=timeout,
            transport=transport
        )

    @classmethod
    def from_config(cls, config: Dict[str, Any], **kwargs) -> 'HTTPGenerationProvider':
        """
        Build a provider from the ``provider`` configuration section.

        Args:
            config: Dict with base_url, endpoint, token, timeout
        """
        base_url = kwargs.pop('base_url', None) or config.get('base_url')
        if not base_url:
            raise ValueError("provider.base_url is not configured")
        return cls(
            base_url=base_url,
            endpoint=config.get('endpoint', '/api/openai-responses'),
            token=config.get('token'),
            timeout=config.get('timeout', 30.0),
            **kwargs
        )

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        try:
            response = await self._client.post(self.endpoint, json=request.to_payload())
        except httpx.HTTPError as e:
            raise ProviderError(f"Request to {self.endpoint} failed: {e}") from e

        if response.status_code < 200 or response.status_code >= 300:
            raise ProviderError(
                f"API error {response.status_code}: {self._error_detail(response)}",
                status_code=response.status_code
            )

        try:
            body = response.json()
        except ValueError as e:
            raise ProviderError(f"Invalid JSON from {self.endpoint}") from e

        if not isinstance(body, dict):
            raise ProviderError(f"Unexpected response body from {self.endpoint}")

        if body.get('success') is False:
            raise ProviderError(body.get('error') or 'Section generation failed')

        content = body.get('content')
        if content is None:
            content = body.get('suggestion')
        if not isinstance(content, str) or not content.strip():
            raise EmptyContentError('Generated content is empty')

        tokens_used = body.get('tokensUsed', body.get('tokens_used')) or 0
        logger.debug(f"Generated {request.section} ({tokens_used} tokens)")

        return GenerationResponse(success=True, content=content, tokens_used=int(tokens_used))

    async def close(self) -> None:
        await self._client.aclose()

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.reason_phrase or 'Unknown API error'
        if isinstance(body, dict) and body.get('error'):
            return str(body['error'])
        return response.reason_phrase or 'Unknown API error'
