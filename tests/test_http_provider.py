"""
Tests for HTTPGenerationProvider
"""

import json

import httpx
import pytest

from genqueue.exceptions import EmptyContentError, ProviderError
from genqueue.providers import GenerationRequest, HTTPGenerationProvider


def make_provider(handler, **kwargs):
    return HTTPGenerationProvider(
        base_url='http://generator.test',
        transport=httpx.MockTransport(handler),
        **kwargs
    )


@pytest.fixture
def generation_request():
    return GenerationRequest(
        section='PROFESSIONAL SUMMARY',
        subject={'fullName': 'Jane Doe'},
        target={'title': 'Lead Engineer'},
        session_id='cf-1-abc',
        order=1
    )


class TestGenerationRequest:
    """Tests for GenerationRequest"""

    def test_payload(self, generation_request):
        payload = generation_request.to_payload()
        assert payload == {
            'section': 'PROFESSIONAL SUMMARY',
            'type': 'generate',
            'candidateData': {'fullName': 'Jane Doe'},
            'jobData': {'title': 'Lead Engineer'},
            'currentContent': '',
            'sessionId': 'cf-1-abc',
            'order': 1,
        }

    def test_payload_omits_unset_session(self):
        payload = GenerationRequest(section='HEADER').to_payload()
        assert 'sessionId' not in payload
        assert 'order' not in payload

    def test_rejects_unknown_operation(self):
        with pytest.raises(ValueError):
            GenerationRequest(section='HEADER', operation='summarize')


class TestHTTPGenerationProvider:
    """Tests for HTTPGenerationProvider"""

    @pytest.mark.asyncio
    async def test_successful_generation(self, generation_request):
        captured = {}

        def handler(request):
            captured['url'] = str(request.url)
            captured['auth'] = request.headers.get('Authorization')
            captured['body'] = json.loads(request.content)
            return httpx.Response(200, json={'success': True, 'content': 'Summary text', 'tokensUsed': 321})

        provider = make_provider(handler, token='secret')
        response = await provider.generate(generation_request)
        await provider.close()

        assert response.success is True
        assert response.content == 'Summary text'
        assert response.tokens_used == 321
        assert captured['url'] == 'http://generator.test/api/openai-responses'
        assert captured['auth'] == 'Bearer secret'
        assert captured['body']['section'] == 'PROFESSIONAL SUMMARY'
        assert captured['body']['sessionId'] == 'cf-1-abc'

    @pytest.mark.asyncio
    async def test_suggestion_field_accepted(self, generation_request):
        def handler(request):
            return httpx.Response(200, json={'success': True, 'suggestion': 'Improved text'})

        provider = make_provider(handler)
        response = await provider.generate(generation_request)
        await provider.close()

        assert response.content == 'Improved text'
        assert response.tokens_used == 0

    @pytest.mark.asyncio
    async def test_http_error_status(self, generation_request):
        def handler(request):
            return httpx.Response(503, json={'error': 'Model overloaded'})

        provider = make_provider(handler)
        with pytest.raises(ProviderError) as exc_info:
            await provider.generate(generation_request)
        await provider.close()

        assert exc_info.value.status_code == 503
        assert str(exc_info.value) == 'API error 503: Model overloaded'

    @pytest.mark.asyncio
    async def test_http_error_without_body(self, generation_request):
        def handler(request):
            return httpx.Response(500, text='oops')

        provider = make_provider(handler)
        with pytest.raises(ProviderError) as exc_info:
            await provider.generate(generation_request)
        await provider.close()

        assert str(exc_info.value) == 'API error 500: Internal Server Error'

    @pytest.mark.asyncio
    async def test_reported_failure(self, generation_request):
        def handler(request):
            return httpx.Response(200, json={'success': False, 'error': 'Content policy'})

        provider = make_provider(handler)
        with pytest.raises(ProviderError, match='Content policy'):
            await provider.generate(generation_request)
        await provider.close()

    @pytest.mark.asyncio
    async def test_empty_content(self, generation_request):
        def handler(request):
            return httpx.Response(200, json={'success': True, 'content': '  '})

        provider = make_provider(handler)
        with pytest.raises(EmptyContentError):
            await provider.generate(generation_request)
        await provider.close()

    @pytest.mark.asyncio
    async def test_invalid_json(self, generation_request):
        def handler(request):
            return httpx.Response(200, text='<html>not json</html>')

        provider = make_provider(handler)
        with pytest.raises(ProviderError, match='Invalid JSON'):
            await provider.generate(generation_request)
        await provider.close()

    @pytest.mark.asyncio
    async def test_transport_error(self, generation_request):
        def handler(request):
            raise httpx.ConnectError('connection refused', request=request)

        provider = make_provider(handler)
        with pytest.raises(ProviderError, match='connection refused'):
            await provider.generate(generation_request)
        await provider.close()

    def test_from_config_requires_base_url(self):
        with pytest.raises(ValueError):
            HTTPGenerationProvider.from_config({'base_url': None})

    @pytest.mark.asyncio
    async def test_from_config(self):
        provider = HTTPGenerationProvider.from_config(
            {'base_url': None, 'endpoint': 'generate', 'timeout': 5},
            base_url='http://override.test/'
        )
        assert provider.base_url == 'http://override.test'
        assert provider.endpoint == '/generate'
        assert provider.timeout == 5
        await provider.close()
