"""
Error types shared by the plugins and the JSON error handlers mounted on the API.
Every error response has the shape {"error": <message>} plus optional diagnostics.
"""
import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)


class AuluxError(Exception):
    """Base error; status_code is the HTTP status it maps to."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequestError(AuluxError):
    status_code = 400


class NotFoundError(AuluxError):
    status_code = 404


class UpstreamAPIError(AuluxError):
    """Non-2xx answer from Google, Resend or Twilio. The upstream status is passed through."""

    def __init__(self, service: str, status: int, details: Any = None, message: Optional[str] = None):
        super().__init__(message or f"{service} API error: {status}")
        self.service = service
        self.status = status
        self.details = details
        self.status_code = status if 400 <= status <= 599 else 502


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path"))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts) or "Invalid request"


def install_error_handlers(app: FastAPI) -> None:
    """Register the JSON error handlers on a FastAPI app."""

    @app.exception_handler(UpstreamAPIError)
    async def _upstream(request: Request, exc: UpstreamAPIError) -> JSONResponse:
        logger.error(f"{exc.service} upstream error on {request.url.path}: {exc.status} {exc.details}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message, "status": exc.status, "details": exc.details},
        )

    @app.exception_handler(AuluxError)
    async def _aulux(request: Request, exc: AuluxError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(HTTPException)
    async def _http(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def _validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": _validation_message(exc)})

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})
