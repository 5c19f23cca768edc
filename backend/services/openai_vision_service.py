import logging
import httpx
from typing import Any, Dict, Optional

from config.settings import Settings
from core.errors import (
    AnalysisError,
    BadUpstreamRequest,
    InternalError,
    RateLimited,
    Unauthorized,
    UpstreamProtocolError,
    UpstreamTimeout,
    UpstreamUnavailable,
)

logger = logging.getLogger(__name__)

ANALYSIS_PROMPT = (
    "You are a helpful assistant for parents. Analyze the provided image which may contain:"
    "\n1. A child's homework problem (math, science, etc.) - solve it step by step with explanations"
    "\n2. Foreign language text - translate it to the parent's language"
    "\n3. General question - provide a clear, concise answer"
    "\n\nFormat your response to be easy for a parent to understand and explain to their child."
)

MSG_UPSTREAM_AUTH_FAILED = "Authentication failed. Please check service configuration."


def build_prompt(language: Optional[str] = None) -> str:
    """Instruction text sent alongside the image"""
    if language:
        return f"{ANALYSIS_PROMPT}\nWrite your whole answer in this language: {language}."
    return f"{ANALYSIS_PROMPT}\nAnswer in the language the parent is most likely to read."


class OpenAIVisionService:
    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self.api_key = settings.OPENAI_API_KEY
        self.base_url = settings.OPENAI_BASE_URL.rstrip("/")
        self.model = settings.VISION_MODEL
        self.timeout = settings.UPSTREAM_TIMEOUT
        self._transport = transport

    def build_payload(self, image_data_url: str, language: Optional[str] = None) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [{
                "role": "user",
                "content": [
                    {
                        "type": "text",
                        "text": build_prompt(language)
                    },
                    {
                        "type": "image_url",
                        "image_url": {
                            "url": image_data_url
                        }
                    }
                ]
            }],
            "max_tokens": self.settings.MAX_TOKENS
        }

    def _client(self) -> httpx.AsyncClient:
        if self._transport is not None:
            return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

        proxy_url = self.settings.proxy_url
        if proxy_url:
            return httpx.AsyncClient(timeout=self.timeout, proxy=proxy_url)
        return httpx.AsyncClient(timeout=self.timeout)

    async def analyze(self, image_data_url: str, language: Optional[str] = None) -> str:
        """
        Ask the vision model to explain an image.

        Args:
            image_data_url: Validated data:image/... URL
            language: Optional answer language

        Returns:
            The model's answer, verbatim

        Raises:
            AnalysisError: Subclass matching the provider outcome
        """
        if not self.api_key:
            raise InternalError(details="AI provider API key not configured")

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }
        payload = self.build_payload(image_data_url, language)

        logger.info(
            "🔍 Sending image to %s (model=%s, proxy=%s)",
            self.base_url, self.model, self.settings.proxy_display or "none"
        )

        try:
            async with self._client() as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    json=payload,
                    headers=headers
                )
        except httpx.TimeoutException:
            raise UpstreamTimeout(details=f"AI service did not answer within {self.timeout:g}s")
        except httpx.HTTPError as error:
            raise InternalError(details=f"Error calling AI service: {type(error).__name__}: {error}")

        if response.status_code != 200:
            raise self.map_error_response(response)

        return self.extract_content(response)

    @staticmethod
    def map_error_response(response: httpx.Response) -> AnalysisError:
        """Translate a non-200 provider response into the matching error"""
        status = response.status_code
        error_message = None
        error_code = None

        try:
            error_data = response.json() if response.content else {}
        except ValueError:
            error_data = {}

        error = error_data.get("error") if isinstance(error_data, dict) else None
        if isinstance(error, dict):
            error_message = error.get("message")
            error_code = error.get("code")
        elif isinstance(error, str):
            error_message = error

        details = error_message or f"AI service request failed: {status}"

        if error_code == "model_not_found" or status == 503:
            return UpstreamUnavailable(details=details)
        if status == 401:
            return Unauthorized(MSG_UPSTREAM_AUTH_FAILED, details=details)
        if status == 429:
            retry_after = response.headers.get("Retry-After")
            return RateLimited(
                details=details,
                headers={"Retry-After": retry_after} if retry_after else None
            )
        if status == 400:
            return BadUpstreamRequest(details=details)
        return InternalError(details=details)

    @staticmethod
    def extract_content(response: httpx.Response) -> str:
        """Pull choices[0].message.content out of a completion body"""
        try:
            data = response.json()
        except ValueError:
            raise UpstreamProtocolError(details="AI service returned a non-JSON body")

        choices = data.get("choices") if isinstance(data, dict) else None
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            raise UpstreamProtocolError(details="AI service response has no choices")

        message = choices[0].get("message")
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str) or not content:
            raise UpstreamProtocolError(details="AI service response has no message content")

        return content
