import logging
from fastapi import APIRouter, Depends, Header, Request
from typing import Optional

from config.settings import Settings
from core.auth import get_api_key, verify_api_key
from core.errors import AnalysisError, InternalError
from models.analysis import AnalysisRequest, AnalysisResult
from services.image_service import validate_image_data_url
from services.openai_vision_service import OpenAIVisionService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["analyze"])

def get_settings(request: Request) -> Settings:
    return request.app.state.settings

def get_vision_service(request: Request) -> OpenAIVisionService:
    return request.app.state.vision_service

def preferred_language(accept_language: Optional[str]) -> Optional[str]:
    """First language tag of an Accept-Language header, e.g. 'de-DE,de;q=0.9' -> 'de-DE'"""
    if not accept_language:
        return None
    tag = accept_language.split(",")[0].split(";")[0].strip()
    if not tag or tag == "*":
        return None
    return tag

@router.post(
    "/analyze",
    response_model=AnalysisResult,
    response_model_exclude_none=True,
)
async def analyze_image(
    analysis_request: AnalysisRequest,
    api_key: Optional[str] = Depends(get_api_key),
    accept_language: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
    vision_service: OpenAIVisionService = Depends(get_vision_service),
):
    """Explain a homework problem, foreign text or question shown in an image"""
    image = validate_image_data_url(analysis_request.image, settings.MAX_IMAGE_BYTES)
    verify_api_key(api_key, settings)

    logger.info("📷 Analyzing %s image (%d bytes)", image.mime_type, image.size_bytes)

    language = analysis_request.language or preferred_language(accept_language)
    try:
        result = await vision_service.analyze(image.data_url, language)
    except AnalysisError:
        raise
    except Exception as e:
        raise InternalError(details=f"{type(e).__name__}: {e}") from e

    return AnalysisResult(success=True, result=result)
