"""Web tier: same-origin relay in front of the analysis service."""
from fastapi import FastAPI, Request
from typing import List, Optional
import httpx
import logging
import os

from api import relay
from config.log_config import configure_logging
from config.settings import Settings
from services.relay_service import RelayService

if not os.getenv("DYNO"):
    from dotenv import load_dotenv
    load_dotenv()

logger = logging.getLogger(__name__)

def build_content_security_policy(settings: Settings) -> str:
    connect_src: List[str] = ["'self'", settings.BACKEND_URL, *settings.CSP_CONNECT_SRC]
    return "; ".join([
        "default-src 'self'",
        "script-src 'self' 'unsafe-inline'",
        "style-src 'self' 'unsafe-inline'",
        "img-src 'self' data: blob:",
        f"connect-src {' '.join(connect_src)}",
        "font-src 'self'",
        "frame-src 'self'",
        "media-src 'self' blob:",
    ])

def create_web_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Build the relay app. `transport` replaces the network for calls to the analysis service."""
    settings = settings or Settings()

    app = FastAPI(title=f"{settings.PROJECT_NAME} (web)", version=settings.VERSION)
    app.state.settings = settings
    app.state.relay_service = RelayService(settings, transport=transport)

    content_security_policy = build_content_security_policy(settings)

    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers["Content-Security-Policy"] = content_security_policy
        response.headers["X-Content-Type-Options"] = "nosniff"
        return response

    app.include_router(relay.router)
    return app

settings = Settings()
configure_logging(settings.LOG_LEVEL)
app = create_web_app(settings)

logger.info("🔁 Relaying /api/analyze to %s", settings.BACKEND_URL)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.HOST, port=settings.WEB_PORT)
