from fastapi import APIRouter, Header, Request
from fastapi.responses import JSONResponse
from typing import Optional

from core.rate_limit import get_client_ip
from services.relay_service import RelayService

router = APIRouter(prefix="/api", tags=["relay"])

def get_relay_service(request: Request) -> RelayService:
    return request.app.state.relay_service

@router.post("/analyze")
async def relay_analyze(request: Request, accept_language: Optional[str] = Header(None)):
    """Forward an image to the analysis service and pass its answer through unchanged"""
    try:
        body = await request.json()
    except ValueError:
        body = None

    image = body.get("image") if isinstance(body, dict) else None
    if not image:
        return JSONResponse(status_code=400, content={"success": False, "message": "Image is required"})

    payload = {"image": image}
    if body.get("language"):
        payload["language"] = body["language"]

    settings = request.app.state.settings
    client_ip = get_client_ip(request, settings.TRUST_FORWARDED_FOR)

    status_code, content, headers = await get_relay_service(request).forward(payload, accept_language, client_ip)
    return JSONResponse(status_code=status_code, content=content, headers=headers)

@router.api_route("/analyze", methods=["GET", "HEAD", "OPTIONS", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def relay_method_not_allowed():
    return JSONResponse(
        status_code=405,
        content={"message": "Method not allowed"},
        headers={"Allow": "POST"}
    )

@router.get("/health")
async def relay_health():
    return {"status": "ok"}
