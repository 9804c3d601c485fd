"""
FastAPI application entry point for the vision board service.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse

from visionboard import demo_routes, routes
from visionboard.config import get_settings
from visionboard.errors import AuthenticationError, PartialFailure, VisionBoardError

logger = logging.getLogger(__name__)


def _error_body(exc: VisionBoardError) -> dict:
    body = {"error": exc.__class__.__name__, "message": exc.message}
    if isinstance(exc, PartialFailure):
        body["orphaned_paths"] = exc.orphaned_paths
    return body


async def vision_board_error_handler(request: Request, exc: VisionBoardError):
    settings = get_settings()
    if (
        isinstance(exc, AuthenticationError)
        and request.method == "GET"
        and not request.url.path.startswith(settings.api_prefix)
    ):
        return RedirectResponse(settings.login_path, status_code=303)

    if exc.status_code >= 500:
        logger.error("%s on %s: %s", exc.__class__.__name__, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Request validation errors share the envelope of every other error:

        {"error": "ValidationError", "message": "Request validation failed", "detail": [...]}
    """
    return JSONResponse(
        status_code=422,
        content={
            "error": "ValidationError",
            "message": "Request validation failed",
            "detail": jsonable_encoder(exc.errors()),
        },
    )


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())
    app = FastAPI(title="Vision Board", version="0.1.0")
    app.add_exception_handler(VisionBoardError, vision_board_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.include_router(routes.pages)
    app.include_router(routes.router, prefix=settings.api_prefix)
    app.include_router(demo_routes.router, prefix=settings.api_prefix)
    return app


app = create_app()
