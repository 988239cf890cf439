"""
Exception handlers mapping domain errors to JSON responses.

Every error body has the shape ``{"error": message}``; request validation
errors add ``details``. Internal details are logged, never returned.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..database.exceptions import DatabaseError
from ..errors import CompletionError, CompletionRateLimitedError, ScopeFlowError
from ..services.rate_limiter import RateLimitExceeded

logger = logging.getLogger(__name__)


async def scopeflow_error_handler(request: Request, exc: ScopeFlowError) -> JSONResponse:
    if isinstance(exc, CompletionError):
        # Upstream details stay in the logs
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
        content = {"error": exc.public_message}
    else:
        logger.info(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
        content = {"error": exc.message}
        if exc.details is not None:
            content["details"] = exc.details

    headers = {}
    if isinstance(exc, CompletionRateLimitedError) and exc.retry_after is not None:
        headers["Retry-After"] = str(exc.retry_after)

    return JSONResponse(status_code=exc.status_code, content=content, headers=headers or None)


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={"error": "Rate limit exceeded. Please try again later.", "retry_after": exc.retry_after},
        headers={"Retry-After": str(exc.retry_after)},
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request data", "details": jsonable_encoder(exc.errors())},
    )


async def database_error_handler(request: Request, exc: DatabaseError) -> JSONResponse:
    logger.error(f"Database error on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ScopeFlowError, scopeflow_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(DatabaseError, database_error_handler)
    app.add_exception_handler(Exception, global_exception_handler)
