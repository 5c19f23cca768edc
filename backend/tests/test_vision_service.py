"""
Layer 2: OpenAIVisionService unit tests

These tests validate request building and response/error mapping of the
provider client in isolation.
"""
import httpx
import pytest

from conftest import FakeProvider, PNG_DATA_URL, completion_body, connect_error, timeout_error
from core.errors import (
    BadUpstreamRequest,
    InternalError,
    RateLimited,
    Unauthorized,
    UpstreamProtocolError,
    UpstreamTimeout,
    UpstreamUnavailable,
)
from services.openai_vision_service import ANALYSIS_PROMPT, OpenAIVisionService, build_prompt


@pytest.fixture
def make_service(make_settings):
    def _make(provider, **overrides):
        return OpenAIVisionService(make_settings(**overrides), transport=provider.transport)
    return _make


@pytest.mark.unit
class TestPromptAndPayload:
    """Tests for the request sent to the provider"""

    def test_prompt_names_all_categories(self):
        prompt = build_prompt()

        assert prompt.startswith(ANALYSIS_PROMPT)
        assert "homework" in prompt
        assert "Foreign language text" in prompt
        assert "General question" in prompt

    def test_prompt_language(self):
        assert "French" in build_prompt("French")

    def test_payload_shape(self, make_settings):
        service = OpenAIVisionService(make_settings(VISION_MODEL="gpt-test", MAX_TOKENS=123))

        payload = service.build_payload(PNG_DATA_URL)

        assert payload["model"] == "gpt-test"
        assert payload["max_tokens"] == 123
        message = payload["messages"][0]
        assert message["role"] == "user"
        assert [part["type"] for part in message["content"]] == ["text", "image_url"]
        assert message["content"][1]["image_url"]["url"] == PNG_DATA_URL


@pytest.mark.unit
@pytest.mark.asyncio
class TestAnalyze:
    """Tests for OpenAIVisionService.analyze"""

    async def test_returns_content(self, make_service):
        provider = FakeProvider(body=completion_body("  4  "))

        result = await make_service(provider).analyze(PNG_DATA_URL)

        assert result == "  4  "
        assert provider.calls == 1

    async def test_uses_base_url_and_bearer_token(self, make_service):
        provider = FakeProvider()
        service = make_service(provider, OPENAI_BASE_URL="https://llm.example.com/v1/", OPENAI_API_KEY="sk-abc")

        await service.analyze(PNG_DATA_URL)

        request = provider.requests[0]
        assert str(request.url) == "https://llm.example.com/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer sk-abc"

    async def test_no_api_key(self, make_service):
        provider = FakeProvider()

        with pytest.raises(InternalError) as exc_info:
            await make_service(provider, OPENAI_API_KEY=None).analyze(PNG_DATA_URL)

        assert "not configured" in exc_info.value.details
        assert provider.calls == 0

    @pytest.mark.parametrize("status_code,error_class", [
        (400, BadUpstreamRequest),
        (401, Unauthorized),
        (429, RateLimited),
        (503, UpstreamUnavailable),
        (500, InternalError),
        (418, InternalError),
    ])
    async def test_error_status_mapping(self, make_service, status_code, error_class):
        provider = FakeProvider(status_code=status_code, body={"error": {"message": "nope"}})

        with pytest.raises(error_class) as exc_info:
            await make_service(provider).analyze(PNG_DATA_URL)

        assert exc_info.value.details == "nope"

    async def test_rate_limit_keeps_retry_after(self, make_service):
        provider = FakeProvider(status_code=429, body={}, headers={"Retry-After": "20"})

        with pytest.raises(RateLimited) as exc_info:
            await make_service(provider).analyze(PNG_DATA_URL)

        assert exc_info.value.headers == {"Retry-After": "20"}

    async def test_error_without_body(self, make_service):
        provider = FakeProvider(status_code=500, body=b"")

        with pytest.raises(InternalError) as exc_info:
            await make_service(provider).analyze(PNG_DATA_URL)

        assert "500" in exc_info.value.details

    async def test_model_not_found(self, make_service):
        provider = FakeProvider(status_code=404, body={"error": {"message": "gone", "code": "model_not_found"}})

        with pytest.raises(UpstreamUnavailable):
            await make_service(provider).analyze(PNG_DATA_URL)

    async def test_timeout(self, make_service):
        with pytest.raises(UpstreamTimeout):
            await make_service(FakeProvider(exception=timeout_error)).analyze(PNG_DATA_URL)

    async def test_transport_error(self, make_service):
        with pytest.raises(InternalError) as exc_info:
            await make_service(FakeProvider(exception=connect_error)).analyze(PNG_DATA_URL)

        assert "ConnectError" in exc_info.value.details

    @pytest.mark.parametrize("body", [
        {},
        {"choices": None},
        {"choices": ["text"]},
        {"choices": [{"message": {"content": None}}]},
        {"choices": [{"message": {"content": ""}}]},
        [1, 2, 3],
        b"not json",
    ])
    async def test_protocol_errors(self, make_service, body):
        with pytest.raises(UpstreamProtocolError):
            await make_service(FakeProvider(body=body)).analyze(PNG_DATA_URL)


@pytest.mark.unit
class TestErrorResponseMapping:
    """Direct tests for map_error_response"""

    def test_string_error_field(self):
        response = httpx.Response(400, json={"error": "bad image"})

        error = OpenAIVisionService.map_error_response(response)

        assert isinstance(error, BadUpstreamRequest)
        assert error.details == "bad image"

    def test_upstream_auth_message(self):
        error = OpenAIVisionService.map_error_response(httpx.Response(401, json={}))

        assert error.status_code == 401
        assert error.message.startswith("Authentication failed")
