"""Request-boundary conversion of failures into the normalized JSON error body."""
import logging
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from core.errors import AnalysisError, InvalidRequest
from models.analysis import AnalysisResult

logger = logging.getLogger(__name__)


def error_response(error: AnalysisError) -> JSONResponse:
    body = AnalysisResult(success=False, message=error.message, details=error.details)
    return JSONResponse(
        status_code=error.status_code,
        content=body.model_dump(exclude_none=True),
        headers=error.headers,
    )


async def handle_analysis_error(request: Request, exc: AnalysisError) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "❌ %s %s -> %s (%d): %s | details=%s",
        request.method, request.url.path, type(exc).__name__, exc.status_code, exc.message, exc.details
    )
    return error_response(exc)


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Only locations and messages, the offending input may be an image payload
    problems = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}"
        for error in exc.errors()
    )
    return await handle_analysis_error(request, InvalidRequest("Invalid request body", details=problems))


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Server error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Internal server error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AnalysisError, handle_analysis_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
