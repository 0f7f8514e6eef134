import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from boilerplate.core.errors import AppError, BadRequestError, ErrorField, error_code
from boilerplate.schemas.response import ResponseEnvelope

logger = logging.getLogger(__name__)


def envelope_response(exc: BaseException) -> JSONResponse:
    envelope = ResponseEnvelope.failure(exc)
    return JSONResponse(status_code=envelope.code, content=envelope.to_body())


# ----------- Exception Handlers (called by FastAPI) -----------

def app_error_handler(request: Request, exc: AppError):
    """Handles errors from the service layer and repositories."""
    if error_code(exc) >= 500:
        logger.error("%s %s failed: %r", request.method, request.url.path, exc)
    else:
        logger.debug("%s %s rejected: %r", request.method, request.url.path, exc)
    return envelope_response(exc)


def http_exception_handler(request: Request, exc: HTTPException):
    """Handles exceptions raised by HTTPException (e.g., 404 on unknown routes)."""
    return envelope_response(AppError(message=str(exc.detail), code=exc.status_code))


def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies and query strings become 400 with one entry per field."""
    errors = [
        ErrorField(field=".".join(str(part) for part in err.get("loc", ())), message=err.get("msg", "invalid value"))
        for err in exc.errors()
    ]
    return envelope_response(BadRequestError(errors=errors))


def generic_exception_handler(request: Request, exc: Exception):
    """Handles all unhandled exceptions (500 Internal Server Error)."""
    logger.exception("Unhandled exception on path: %s", request.url.path)
    return envelope_response(exc)


# ----------- Registration Function -----------

def setup_exception_handlers(app: FastAPI):
    """Registers all custom exception handlers with the FastAPI application."""
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    return app
