"""Request-scoped access to the app's service container and error mapping."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from pawpass.core.errors import (
    AggregationError,
    ConflictError,
    EngineError,
    NotFoundError,
    ValidationError,
    error_payload,
)
from pawpass.core.server.services import Services

logger = logging.getLogger(__name__)

_STATUS_CODES: dict[type[EngineError], int] = {
    ValidationError: 400,
    NotFoundError: 404,
    ConflictError: 409,
    AggregationError: 503,
}


def get_services(request: Request) -> Services:
    return request.app.state.services


def status_code_for(exc: EngineError) -> int:
    for error_type, code in _STATUS_CODES.items():
        if isinstance(exc, error_type):
            return code
    return 500


async def engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
    code = status_code_for(exc)
    logger.info("%s %s -> %d (%s)", request.method, request.url.path, code, type(exc).__name__)
    return JSONResponse(status_code=code, content=error_payload(exc))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(EngineError, engine_error_handler)
