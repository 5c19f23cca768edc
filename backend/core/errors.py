"""Error taxonomy for the analysis service.

Each class carries the HTTP status and user-facing message it maps to, so the
request boundary can turn any of them into the normalized error body.
"""
from typing import Dict, Optional


class AnalysisError(Exception):
    """Base error for known analysis failures."""

    status_code: int = 500
    default_message: str = "Error processing your request"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.message = message or self.default_message
        self.details = details
        self.headers = headers
        super().__init__(self.message)


class InvalidRequest(AnalysisError):
    """Missing, malformed or oversized image payload."""

    status_code = 400
    default_message = "Invalid request"


class Unauthorized(AnalysisError):
    """Bad or missing inbound API key, or the provider rejected our credentials."""

    status_code = 401
    default_message = "Invalid or missing API key"


class RateLimited(AnalysisError):
    """Inbound throttle hit, or the provider answered 429."""

    status_code = 429
    default_message = "Too many requests. Please try again later."


class BadUpstreamRequest(AnalysisError):
    status_code = 400
    default_message = "The AI service could not process this image."


class UpstreamUnavailable(AnalysisError):
    status_code = 503
    default_message = "Service temporarily unavailable"


class UpstreamTimeout(AnalysisError):
    status_code = 504
    default_message = "Request timeout"


class UpstreamProtocolError(AnalysisError):
    """Provider answered 200 with a body we cannot read a completion from."""

    status_code = 500
    default_message = "Invalid response from AI service"


class InternalError(AnalysisError):
    status_code = 500
    default_message = "Error processing your request"
