"""API middleware: CORS, request logging, and error handling.

Starlette middleware is a stack (last added, first executed).  ``main.py``
adds ``ErrorHandlingMiddleware`` before ``RequestLoggingMiddleware`` so the
request log records the final status code, including error responses
produced by the error handler.
"""

from __future__ import annotations

import time

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from sitechat.api.schemas import ErrorResponse
from sitechat.utils.errors import (
    ConfigurationError,
    IndexingStateError,
    SiteChatError,
    TransportFailureError,
    UserInputInvalidError,
)
from sitechat.utils.logging import bind_request_context, get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Most specific first; anything else is a 500.
_STATUS_BY_ERROR: tuple[tuple[type[SiteChatError], int], ...] = (
    (UserInputInvalidError, 422),
    (IndexingStateError, 409),
    (ConfigurationError, 503),
    (TransportFailureError, 502),
)


def status_for(exc: SiteChatError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Add CORS middleware; the chat widget is served from the CMS origin.

    Parameters
    ----------
    app:
        The FastAPI application instance.
    allowed_origins:
        Explicit list of allowed origins.  Defaults to ``["*"]``.
    """
    origins = allowed_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )


# ---------------------------------------------------------------------------
# Request Logging
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with method, path, status code, and duration.

    A caller-supplied ``X-Request-ID`` is reused, otherwise one is generated;
    it is bound into the structlog context and echoed on the response.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        request_id = bind_request_context(request.headers.get(REQUEST_ID_HEADER))
        start = time.perf_counter()
        response: Response | None = None

        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            status_code = response.status_code if response else 500
            _logger.info(
                "http_request",
                method=request.method,
                path=str(request.url.path),
                status=status_code,
                duration_ms=duration_ms,
            )


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Convert ``SiteChatError`` subclasses into structured JSON errors.

    The client sees the exception class name and its message; provider
    details and stack traces stay in the server log.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except SiteChatError as exc:
            status = status_for(exc)
            _logger.error(
                "application_error",
                error_type=type(exc).__name__,
                message=exc.message,
                provider=exc.provider_name,
                path=str(request.url.path),
                status=status,
            )
            body = ErrorResponse(error=type(exc).__name__, detail=exc.message)
            return JSONResponse(status_code=status, content=body.model_dump())
