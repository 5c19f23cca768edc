"""
Shared pytest fixtures and configuration for all tests
"""
import base64
import json
import pytest
import sys
import httpx
from pathlib import Path

# Add backend to Python path for imports
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Smallest byte string that sniffs as PNG, padded to a known size
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 24
PNG_DATA_URL = "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode("ascii")

# Settings that tests must not inherit from the machine running them
_ENV_VARS = [
    "OPENAI_API_KEY", "OPENAI_BASE_URL", "VISION_MODEL", "MAX_IMAGE_BYTES", "ANALYZE_API_KEY",
    "PROXY_HOST", "PROXY_PORT", "PROXY_USERNAME", "PROXY_PASSWORD", "PROXY_PROTOCOL",
    "RATE_LIMIT_ENABLED", "RATE_LIMIT_WINDOW_SECONDS", "RATE_LIMIT_MAX_REQUESTS",
    "TRUST_FORWARDED_FOR", "BACKEND_URL", "CSP_CONNECT_SRC", "ALLOWED_ORIGINS",
]


def completion_body(content="Step 1: add the numbers."):
    return {
        "id": "chatcmpl-123",
        "object": "chat.completion",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}, "finish_reason": "stop"}],
    }


class FakeProvider:
    """Stands in for the chat-completion API and records what it was sent"""

    def __init__(self, status_code=200, body=None, exception=None, headers=None):
        self.status_code = status_code
        self.body = completion_body() if body is None else body
        self.exception = exception
        self.headers = headers or {}
        self.requests = []

    @property
    def calls(self):
        return len(self.requests)

    @property
    def last_payload(self):
        return json.loads(self.requests[-1].content)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.exception is not None:
            raise self.exception(request)
        if isinstance(self.body, (dict, list)):
            return httpx.Response(self.status_code, json=self.body, headers=self.headers)
        return httpx.Response(self.status_code, content=self.body, headers=self.headers)

    @property
    def transport(self):
        return httpx.MockTransport(self.handler)


def timeout_error(request):
    return httpx.ReadTimeout("timed out", request=request)


def connect_error(request):
    return httpx.ConnectError("connection refused", request=request)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def make_settings():
    """Build Settings without reading .env, with a provider key set"""
    from config.settings import Settings

    def _make(**overrides):
        values = {"OPENAI_API_KEY": "sk-test-key"}
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def make_client(make_settings):
    """TestClient for the analysis service wired to a FakeProvider"""
    from fastapi.testclient import TestClient
    from main import create_app

    def _make(provider: FakeProvider, **overrides):
        app = create_app(make_settings(**overrides), transport=provider.transport)
        return TestClient(app)

    return _make


@pytest.fixture
def client(make_client, provider):
    return make_client(provider)
