"""
Process entrypoints.

    boilerplate http              serve the REST API
    boilerplate grpc              serve the gRPC API
    boilerplate event-consumer    relay guest events to the webhook
    boilerplate app               all three in one process
    boilerplate generate-schemas  create missing tables
"""
import asyncio
import logging

import click
import uvicorn

from boilerplate.core.config import GRACEFUL_SHUTDOWN_SECONDS, GRPC_PORT, HTTP_HOST, HTTP_PORT
from boilerplate.core.db import close_db, init_db
from boilerplate.core.logging import setup_logging
from boilerplate.core.redis import close_redis, init_redis
from boilerplate.core.tracer import setup_tracer, shutdown_tracer

logger = logging.getLogger(__name__)


async def _open_datasources():
    await init_db()
    await init_redis()


async def _close_datasources():
    await close_redis()
    await close_db()
    shutdown_tracer()


async def _serve_grpc(port: int):
    from boilerplate.rpc.server import serve

    await _open_datasources()
    try:
        await serve(port)
    finally:
        await _close_datasources()


async def _consume_events():
    from boilerplate.consumers.event_consumer import EventConsumer

    await _open_datasources()
    try:
        await EventConsumer().run()
    finally:
        await _close_datasources()


async def _serve_app(host: str, http_port: int, grpc_port: int):
    from boilerplate.consumers.event_consumer import EventConsumer
    from boilerplate.main import app
    from boilerplate.rpc.server import create_server

    await _open_datasources()
    http_server = uvicorn.Server(uvicorn.Config(app, host=host, port=http_port, lifespan="off", log_config=None))
    grpc_server = create_server(port=grpc_port)
    consumer = EventConsumer()

    await grpc_server.start()
    consumer_task = asyncio.create_task(consumer.run())
    logger.info("gRPC server listening on %s", grpc_port)
    try:
        # Returns once uvicorn receives SIGINT/SIGTERM
        await http_server.serve()
    finally:
        consumer.stop()
        await consumer_task
        await grpc_server.stop(GRACEFUL_SHUTDOWN_SECONDS)
        await _close_datasources()


def _run(coroutine, name: str):
    try:
        asyncio.run(coroutine)
    except KeyboardInterrupt:
        logger.info("%s stopped.", name)


@click.group()
def cli():
    """Guest service boilerplate."""
    setup_logging()
    setup_tracer()


@cli.command()
@click.option("--host", default=HTTP_HOST, show_default=True)
@click.option("--port", default=HTTP_PORT, show_default=True, type=int)
def http(host: str, port: int):
    """Serve the HTTP API."""
    uvicorn.run(
        "boilerplate.main:app",
        host=host,
        port=port,
        log_config=None,
        timeout_graceful_shutdown=int(GRACEFUL_SHUTDOWN_SECONDS),
    )


@cli.command()
@click.option("--port", default=GRPC_PORT, show_default=True, type=int)
def grpc(port: int):
    """Serve the gRPC API."""
    _run(_serve_grpc(port), "gRPC server")


@cli.command("event-consumer")
def event_consumer():
    """Consume guest events and relay them to the webhook."""
    _run(_consume_events(), "Event consumer")


@cli.command()
@click.option("--host", default=HTTP_HOST, show_default=True)
@click.option("--http-port", default=HTTP_PORT, show_default=True, type=int)
@click.option("--grpc-port", default=GRPC_PORT, show_default=True, type=int)
def app(host: str, http_port: int, grpc_port: int):
    """Run HTTP, gRPC and the event consumer in one process."""
    _run(_serve_app(host, http_port, grpc_port), "Application")


@cli.command("generate-schemas")
def generate_schemas():
    """Create missing tables on the primary database."""

    async def _generate():
        await init_db(generate_schemas=True)
        await close_db()

    asyncio.run(_generate())
    click.echo("Schemas generated.")


if __name__ == "__main__":
    cli()
