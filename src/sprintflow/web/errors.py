"""Exception handlers rendering the error envelope.

Every failure leaves the API as::

    {"success": false, "error": {"code": "...", "message": "..."}}

Expected errors carry their own code and status. Anything else is logged
with its traceback and answered with a generic INTERNAL_ERROR.
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from sprintflow.logging import get_logger
from sprintflow.orchestrator.errors import InternalError, SprintflowError

logger = get_logger(__name__)

GENERIC_INTERNAL_MESSAGE = "Internal server error"


def error_body(code: str, message: str) -> dict[str, Any]:
    """Build the failure envelope."""
    return {"success": False, "error": {"code": code, "message": message}}


def _format_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(p) for p in error.get("loc", ()) if p != "body")
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts) or "Invalid request"


async def sprintflow_error_handler(request: Request, exc: SprintflowError) -> JSONResponse:
    if isinstance(exc, InternalError):
        logger.error(
            "internal_error",
            method=request.method,
            path=request.url.path,
            error=exc.message,
        )
    else:
        logger.info(
            "request_rejected",
            method=request.method,
            path=request.url.path,
            code=exc.code,
            error=exc.message,
        )
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.code, exc.message))


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    message = _format_validation_errors(exc)
    logger.info("request_invalid", path=request.url.path, error=message)
    return JSONResponse(status_code=400, content=error_body("VALIDATION_ERROR", message))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "unhandled_error",
        method=request.method,
        path=request.url.path,
        error_type=type(exc).__name__,
    )
    return JSONResponse(
        status_code=500,
        content=error_body(InternalError.code, GENERIC_INTERNAL_MESSAGE),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Install the envelope handlers on an application."""
    app.add_exception_handler(SprintflowError, sprintflow_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(
        RequestValidationError, validation_error_handler  # type: ignore[arg-type]
    )
    app.add_exception_handler(Exception, unhandled_error_handler)
