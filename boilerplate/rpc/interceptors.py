"""
Server interceptors for unary-unary methods.

Each interceptor wraps the method behavior returned by the next stage, so they
compose in the order they are passed to the server (first is outermost).
"""
import asyncio
import logging
import time
from http import HTTPStatus
from typing import Any, Awaitable, Callable

import grpc
from opentelemetry import context as otel_context
from opentelemetry import trace

from boilerplate.core.context import new_request_id, reset_request_id, set_request_id
from boilerplate.core.errors import AppError
from boilerplate.core.tracer import extract_context
from boilerplate.rpc.errors import abort_with

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

REQUEST_ID_METADATA = "x-request-id"

Behavior = Callable[[Any, grpc.aio.ServicerContext], Awaitable[Any]]


def _metadata(details: grpc.HandlerCallDetails) -> dict:
    return {key: value for key, value in (details.invocation_metadata or ()) if isinstance(value, str)}


class UnaryInterceptor(grpc.aio.ServerInterceptor):
    async def intercept_service(self, continuation, handler_call_details):
        handler = await continuation(handler_call_details)
        if handler is None or handler.unary_unary is None:
            return handler

        behavior = handler.unary_unary

        async def wrapped(request, context):
            return await self.around(behavior, request, context, handler_call_details)

        return grpc.unary_unary_rpc_method_handler(
            wrapped,
            request_deserializer=handler.request_deserializer,
            response_serializer=handler.response_serializer,
        )

    async def around(self, behavior: Behavior, request, context, details: grpc.HandlerCallDetails):
        return await behavior(request, context)


class RequestIdInterceptor(UnaryInterceptor):
    async def around(self, behavior, request, context, details):
        request_id = _metadata(details).get(REQUEST_ID_METADATA) or new_request_id()
        token = set_request_id(request_id)
        try:
            await context.send_initial_metadata(((REQUEST_ID_METADATA, request_id),))
            return await behavior(request, context)
        finally:
            reset_request_id(token)


class TracerInterceptor(UnaryInterceptor):
    async def around(self, behavior, request, context, details):
        token = otel_context.attach(extract_context(_metadata(details)))
        try:
            with tracer.start_as_current_span(details.method, kind=trace.SpanKind.SERVER):
                return await behavior(request, context)
        finally:
            otel_context.detach(token)


class LogInterceptor(UnaryInterceptor):
    async def around(self, behavior, request, context, details):
        started = time.perf_counter()
        try:
            return await behavior(request, context)
        finally:
            logger.info("%s %s %.1fms", details.method, context.code() or grpc.StatusCode.OK, (time.perf_counter() - started) * 1000)


class TimeoutInterceptor(UnaryInterceptor):
    def __init__(self, timeout: float):
        self.timeout = timeout

    async def around(self, behavior, request, context, details):
        try:
            return await asyncio.wait_for(behavior(request, context), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error("%s timed out after %ss", details.method, self.timeout)
            await abort_with(context, AppError(code=HTTPStatus.GATEWAY_TIMEOUT))
            raise


class RecoverInterceptor(UnaryInterceptor):
    """Turns unexpected exceptions into INTERNAL instead of leaking them to the transport."""

    async def around(self, behavior, request, context, details):
        try:
            return await behavior(request, context)
        except (grpc.aio.AbortError, AppError, asyncio.CancelledError):
            raise
        except Exception as exc:
            logger.exception("Unhandled exception in %s", details.method)
            await abort_with(context, exc)
            raise
