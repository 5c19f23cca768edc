from pydantic import BaseModel, Field
from typing import Any, Optional

class AnalysisRequest(BaseModel):
    # Kept loose so the endpoint can answer missing or non-string images with its own 400
    image: Optional[Any] = None  # data:image/<subtype>;base64,<payload>
    language: Optional[str] = Field(None, max_length=64)  # answer language hint, e.g. "es" or "German"

class AnalysisResult(BaseModel):
    success: bool
    result: Optional[str] = None
    message: Optional[str] = None
    details: Optional[str] = None

class HealthResponse(BaseModel):
    status: str = "ok"
