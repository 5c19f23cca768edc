from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from typing import Optional
import httpx
import logging
import os

from api import analyze
from config.log_config import configure_logging
from config.settings import Settings
from core.error_handlers import register_exception_handlers
from core.rate_limit import FixedWindowRateLimiter, rate_limit_middleware
from models.analysis import HealthResponse
from services.openai_vision_service import OpenAIVisionService

# Only load .env file if not running on Heroku
if not os.getenv("DYNO"):  # DYNO is a Heroku-specific environment variable
    from dotenv import load_dotenv
    load_dotenv()

logger = logging.getLogger(__name__)

def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Build the analysis service. `transport` replaces the network for the provider call."""
    settings = settings or Settings()

    app = FastAPI(title=settings.PROJECT_NAME, version=settings.VERSION)
    app.state.settings = settings
    app.state.vision_service = OpenAIVisionService(settings, transport=transport)
    app.state.rate_limiter = (
        FixedWindowRateLimiter(settings.RATE_LIMIT_MAX_REQUESTS, settings.RATE_LIMIT_WINDOW_SECONDS)
        if settings.RATE_LIMIT_ENABLED
        else None
    )

    # Registered before CORS so throttled responses still carry CORS headers
    app.middleware("http")(rate_limit_middleware)

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(analyze.router)

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        return HealthResponse(status="ok")

    return app

settings = Settings()
configure_logging(settings.LOG_LEVEL)
app = create_app(settings)

logger.info("🚀 %s ready (model: %s)", settings.PROJECT_NAME, settings.VISION_MODEL)
if not settings.OPENAI_API_KEY:
    logger.warning("⚠️ OPENAI_API_KEY is not set, /analyze will fail until it is configured")
if settings.proxy_display:
    logger.info("🌐 Provider calls go through proxy %s", settings.proxy_display)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
