import asyncio
import logging
import time
from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from boilerplate.core.config import HTTP_CORS_ALLOW_METHODS, HTTP_CORS_ALLOW_ORIGINS, HTTP_REQUEST_TIMEOUT
from boilerplate.core.context import new_request_id, reset_request_id, set_request_id
from boilerplate.core.errors import AppError
from boilerplate.core.exception_handlers import envelope_response

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def setup_middlewares(app: FastAPI, request_timeout: float = HTTP_REQUEST_TIMEOUT) -> FastAPI:
    """Registers middlewares; the last one added runs first."""

    @app.middleware("http")
    async def timeout_middleware(request: Request, call_next):
        try:
            return await asyncio.wait_for(call_next(request), timeout=request_timeout)
        except asyncio.TimeoutError:
            logger.error("%s %s timed out after %ss", request.method, request.url.path, request_timeout)
            return envelope_response(AppError(code=HTTPStatus.GATEWAY_TIMEOUT))

    @app.middleware("http")
    async def log_middleware(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "%s %s %s %.1fms",
            request.method, request.url.path, response.status_code, (time.perf_counter() - started) * 1000,
        )
        return response

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or new_request_id()
        token = set_request_id(request_id)
        try:
            response = await call_next(request)
        finally:
            reset_request_id(token)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=HTTP_CORS_ALLOW_ORIGINS,
        allow_methods=HTTP_CORS_ALLOW_METHODS,
        allow_headers=["*"],
    )

    return app
