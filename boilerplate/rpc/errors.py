from http import HTTPStatus

import grpc

from boilerplate.core.errors import AppError, error_code

_STATUS_CODES = {
    HTTPStatus.BAD_REQUEST: grpc.StatusCode.INVALID_ARGUMENT,
    HTTPStatus.UNAUTHORIZED: grpc.StatusCode.UNAUTHENTICATED,
    HTTPStatus.FORBIDDEN: grpc.StatusCode.PERMISSION_DENIED,
    HTTPStatus.NOT_FOUND: grpc.StatusCode.NOT_FOUND,
    HTTPStatus.CONFLICT: grpc.StatusCode.ALREADY_EXISTS,
    HTTPStatus.TOO_MANY_REQUESTS: grpc.StatusCode.RESOURCE_EXHAUSTED,
    HTTPStatus.INTERNAL_SERVER_ERROR: grpc.StatusCode.INTERNAL,
    HTTPStatus.NOT_IMPLEMENTED: grpc.StatusCode.UNIMPLEMENTED,
    HTTPStatus.SERVICE_UNAVAILABLE: grpc.StatusCode.UNAVAILABLE,
    HTTPStatus.GATEWAY_TIMEOUT: grpc.StatusCode.DEADLINE_EXCEEDED,
}


def status_code(code: int) -> grpc.StatusCode:
    return _STATUS_CODES.get(code, grpc.StatusCode.UNKNOWN)


def status_details(exc: BaseException) -> str:
    """First field message when there is one, otherwise the error message."""
    code = error_code(exc)
    if not isinstance(exc, AppError) or code >= HTTPStatus.INTERNAL_SERVER_ERROR:
        return HTTPStatus(code).phrase
    if exc.errors:
        return exc.errors[0].message
    return exc.message


async def abort_with(context: grpc.aio.ServicerContext, exc: BaseException) -> None:
    await context.abort(status_code(error_code(exc)), status_details(exc))
