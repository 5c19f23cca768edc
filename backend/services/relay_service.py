import logging
import httpx
from typing import Any, Dict, Optional, Tuple

from config.settings import Settings

logger = logging.getLogger(__name__)

# Analysis service response headers the relay hands back to the caller
PASS_THROUGH_HEADERS = ("Retry-After", "RateLimit-Limit", "RateLimit-Remaining", "RateLimit-Reset")

class RelayService:
    """Re-issues analysis requests from the web tier to the analysis service."""

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.backend_url = settings.BACKEND_URL.rstrip("/")
        self.timeout = settings.RELAY_TIMEOUT
        self.api_key = settings.ANALYZE_API_KEY
        self._transport = transport

    async def forward(
        self,
        payload: Dict[str, Any],
        accept_language: Optional[str] = None,
        client_ip: Optional[str] = None
    ) -> Tuple[int, Dict[str, Any], Dict[str, str]]:
        """
        Forward a payload to POST /analyze.

        Args:
            payload: JSON body for the analysis service
            accept_language: Caller's Accept-Language header, if any
            client_ip: Caller's address, sent as X-Forwarded-For so the service rate-limits per caller

        Returns:
            (status_code, body, headers) to pass through to the caller
        """
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["X-API-Key"] = self.api_key
        if accept_language:
            headers["Accept-Language"] = accept_language
        if client_ip:
            headers["X-Forwarded-For"] = client_ip

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    f"{self.backend_url}/analyze",
                    json=payload,
                    headers=headers
                )
        except httpx.TimeoutException:
            logger.error("⏱️ Analysis service did not answer within %ss", self.timeout)
            return 504, {
                "success": False,
                "message": "Request timeout",
                "details": f"Analysis service did not answer within {self.timeout:g}s"
            }, {}
        except httpx.HTTPError as error:
            logger.error("❌ Could not reach analysis service at %s: %s", self.backend_url, error)
            return 500, {
                "success": False,
                "message": "Error processing your request",
                "details": f"{type(error).__name__}: {error}"
            }, {}

        try:
            body = response.json()
        except ValueError:
            body = None

        if not isinstance(body, dict):
            logger.error("❌ Analysis service returned a non-JSON body (HTTP %d)", response.status_code)
            return 500, {
                "success": False,
                "message": "Error processing your request",
                "details": f"Backend request failed: {response.status_code}"
            }, {}

        if response.status_code != 200:
            logger.warning("Backend error %d: %s", response.status_code, body.get("message"))

        passed_headers = {
            name: response.headers[name]
            for name in PASS_THROUGH_HEADERS
            if name in response.headers
        }
        return response.status_code, body, passed_headers
