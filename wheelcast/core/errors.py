"""
Error taxonomy shared by the HTTP routes and the realtime channel.

Every error carries the HTTP status it maps to, so the same exception can be
answered as a JSON response or as an ``error`` event on a websocket.
"""

from __future__ import annotations

import logging
import traceback
from typing import Any, Callable, Coroutine, Dict, Type

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.responses import Response

logger = logging.getLogger(__name__)


class WheelError(Exception):
    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class ValidationError(WheelError):
    status_code = 400


class InvalidCapability(WheelError):
    """A wheel key was present but does not resolve to an owner."""
    status_code = 403


class MissingCapability(InvalidCapability):
    status_code = 401


class NotAuthenticated(WheelError):
    status_code = 401


class Forbidden(WheelError):
    status_code = 403


class NotFound(WheelError):
    status_code = 404


class Conflict(WheelError):
    status_code = 409


class Unavailable(WheelError):
    status_code = 500


ExceptionHandler = Callable[[Request, Exception], Coroutine[Any, Any, Response]]


async def wheel_error_handler(request: Request, exc: Exception) -> JSONResponse:
    error = exc if isinstance(exc, WheelError) else WheelError(str(exc))
    if isinstance(error, Unavailable):
        # Persistence faults are logged where they are raised; keep the body generic.
        return JSONResponse(
            status_code=error.status_code,
            content={"detail": "Service unavailable"},
        )
    return JSONResponse(status_code=error.status_code, content={"detail": error.message})


async def validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    error = exc if isinstance(exc, RequestValidationError) else RequestValidationError([])
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Invalid request body", "errors": jsonable_errors(error)},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled exception on %s %s: %s\n%s",
        request.method, request.url.path, exc,
        "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


def jsonable_errors(error: RequestValidationError) -> list:
    return [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg", "")}
        for e in error.errors()
    ]


EXCEPTION_HANDLERS: Dict[Type[Exception], ExceptionHandler] = {
    WheelError: wheel_error_handler,
    RequestValidationError: validation_error_handler,
    Exception: unhandled_exception_handler,
}


def register_exception_handlers(app: FastAPI) -> None:
    for exception_class, handler in EXCEPTION_HANDLERS.items():
        app.add_exception_handler(exception_class, handler)
