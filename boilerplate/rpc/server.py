import logging
from typing import Optional

import grpc

from boilerplate.core.config import GRACEFUL_SHUTDOWN_SECONDS, GRPC_PORT, GRPC_REQUEST_TIMEOUT
from boilerplate.rpc.guest_handler import GuestHandler
from boilerplate.rpc.interceptors import (
    LogInterceptor,
    RecoverInterceptor,
    RequestIdInterceptor,
    TimeoutInterceptor,
    TracerInterceptor,
)
from boilerplate.rpc.stubs import guest_pb2_grpc

logger = logging.getLogger(__name__)


def build_server(handler: Optional[GuestHandler] = None, request_timeout: float = GRPC_REQUEST_TIMEOUT) -> grpc.aio.Server:
    """Server with interceptors and the guest servicer registered, not yet bound to a port."""
    server = grpc.aio.server(
        interceptors=[
            RequestIdInterceptor(),
            TracerInterceptor(),
            LogInterceptor(),
            RecoverInterceptor(),
            TimeoutInterceptor(request_timeout),
        ]
    )
    guest_pb2_grpc.add_BoilerplateServicer_to_server(handler or GuestHandler(), server)
    return server


def create_server(handler: Optional[GuestHandler] = None, port: int = GRPC_PORT) -> grpc.aio.Server:
    server = build_server(handler)
    server.add_insecure_port(f"[::]:{port}")
    return server


async def serve(port: int = GRPC_PORT):
    server = create_server(port=port)
    await server.start()
    logger.info("gRPC server listening on %s", port)
    try:
        await server.wait_for_termination()
    finally:
        await server.stop(GRACEFUL_SHUTDOWN_SECONDS)
        logger.info("gRPC server stopped")
