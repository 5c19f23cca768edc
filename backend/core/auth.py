"""Shared-secret API key check for the analysis endpoint."""
import secrets
from typing import Optional
from fastapi import Security
from fastapi.security import APIKeyHeader

from config.settings import Settings
from core.errors import Unauthorized

API_KEY_HEADER = "X-API-Key"

# auto_error=False so a missing header reaches verify_api_key instead of a 403
api_key_header = APIKeyHeader(name=API_KEY_HEADER, auto_error=False)


def get_api_key(api_key: Optional[str] = Security(api_key_header)) -> Optional[str]:
    """
    Dependency that reads the inbound API key header without judging it.

    The key is checked after the image has been validated, so the endpoint
    reports payload problems before credential problems.
    """
    return api_key


def verify_api_key(provided: Optional[str], settings: Settings) -> None:
    """
    Check the inbound key against the configured secret.

    Args:
        provided: Value of the X-API-Key header, if any
        settings: Application settings

    Raises:
        Unauthorized: If enforcement is enabled and the key is missing or wrong
    """
    if not settings.api_key_required:
        return

    if not provided or not secrets.compare_digest(
        provided.encode("utf-8"), settings.ANALYZE_API_KEY.encode("utf-8")
    ):
        raise Unauthorized("Invalid or missing API key")
