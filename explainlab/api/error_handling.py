"""
Structured error payloads for the HTTP layer.

Route handlers raise ExplainLabError subclasses; the handlers registered here
turn them (and anything unexpected) into a JSON body with a non-2xx status:

    {"status": "error", "error": "...", "error_type": "...",
     "sqlstate": "42501", "endpoint": "restricted"}
"""

from __future__ import annotations

import logging

import asyncpg
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from explainlab.exceptions import ExplainLabError, QueryExecutionError
from explainlab.models.responses import ErrorResponse

logger = logging.getLogger(__name__)


def query_error(endpoint: str, exc: Exception) -> ExplainLabError:
    """
    Wrap an exception raised while serving `endpoint`.

    ExplainLabError instances pass through (tagged with the endpoint);
    asyncpg errors keep their SQLSTATE.
    """
    if isinstance(exc, ExplainLabError):
        if exc.endpoint is None:
            exc.endpoint = endpoint
        return exc
    if isinstance(exc, asyncpg.PostgresError):
        return QueryExecutionError(
            f"{type(exc).__name__}: {exc}",
            endpoint=endpoint,
            sqlstate=getattr(exc, "sqlstate", None),
        )
    return QueryExecutionError(
        f"{type(exc).__name__}: {exc or '(no message)'}", endpoint=endpoint
    )


def error_payload(exc: Exception, endpoint: str | None = None) -> ErrorResponse:
    return ErrorResponse(
        error=getattr(exc, "message", None) or str(exc) or type(exc).__name__,
        error_type=type(exc).__name__,
        sqlstate=getattr(exc, "sqlstate", None),
        endpoint=getattr(exc, "endpoint", None) or endpoint,
    )


async def explainlab_error_handler(request: Request, exc: ExplainLabError) -> JSONResponse:
    logger.warning(
        "%s %s failed (%d): %s", request.method, request.url.path, exc.status_code, exc.message
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_payload(exc).model_dump(),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled error serving %s %s", request.method, request.url.path, exc_info=exc
    )
    return JSONResponse(
        status_code=500,
        content=error_payload(exc, endpoint=request.url.path).model_dump(),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ExplainLabError, explainlab_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_error_handler)
