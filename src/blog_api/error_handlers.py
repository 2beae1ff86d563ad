"""Global exception handlers for the Blog API.

Invariants:
    - BlogAPIError -> {"error": message, "code": code} with its status and headers
    - HTTPException -> {"error": detail}; 404s name the missing route
    - Exception (catch-all) -> 500 that never leaks internals outside development
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from blog_api.exceptions import BlogAPIError

if TYPE_CHECKING:
    from fastapi import FastAPI, Request

logger = logging.getLogger(__name__)


def error_response(exc: BlogAPIError) -> JSONResponse:
    """Render a BlogAPIError as a JSON response.

    Shared by the exception handler and by middleware that answers before
    routing (where raising would bypass the handlers).
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response(),
        headers=exc.headers or None,
    )


def register_error_handlers(app: FastAPI, *, include_details: bool = False) -> None:
    """Register all global error handlers on the FastAPI app.

    Args:
        app: The application.
        include_details: Add exception message to 500 responses (development only).
    """

    @app.exception_handler(BlogAPIError)
    async def blog_api_error_handler(request: Request, exc: BlogAPIError) -> JSONResponse:
        logger.info(
            "Request rejected: %s",
            exc.code,
            extra={"path": request.url.path, "method": request.method, "status": exc.status_code},
        )
        return error_response(exc)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
            logger.warning("Route not found: %s %s", request.method, request.url.path)
            content = {
                "error": "Route not found",
                "message": f"Cannot {request.method} {request.url.path}",
            }
        else:
            content = {"error": exc.detail}
        return JSONResponse(
            status_code=exc.status_code,
            content=content,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled error occurred on %s %s",
            request.method,
            request.url.path,
            exc_info=exc,
        )
        content: dict[str, str] = {"error": "Internal Server Error"}
        if include_details:
            content["details"] = str(exc)
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)
