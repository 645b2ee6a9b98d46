import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

import config

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Failure that maps directly onto a `{success: false, ...}` envelope."""

    def __init__(self, status_code: int, message: str, error: Optional[str] = None, **extra):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.error = error
        self.extra = extra


def failure(status_code: int, message: str, error: Optional[str] = None, **extra) -> JSONResponse:
    body = {"success": False, "message": message}
    if error is not None:
        body["error"] = error
    body.update(extra)
    return JSONResponse(body, status_code=status_code)


def validation_message(errors: list) -> str:
    if any(e.get("type") == "json_invalid" for e in errors):
        return "Invalid JSON body"
    if any(tuple(e.get("loc", ())) == ("body",) for e in errors):
        return "Invalid JSON body"
    missing = [str(e["loc"][-1]) for e in errors if e.get("type") == "missing"]
    if missing:
        verb = "is" if len(missing) == 1 else "are"
        return f"{', '.join(missing)} {verb} required"
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ())[1:])
    return f"{field}: {first.get('msg')}" if field else str(first.get("msg"))


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return failure(exc.status_code, exc.message, exc.error, **exc.extra)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return failure(400, validation_message(exc.errors()))


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return failure(500, "Server error", str(exc) if config.EXPOSE_ERROR_DETAILS else None)


def install(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
