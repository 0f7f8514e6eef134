import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, status
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from boilerplate.api.middlewares import setup_middlewares
from boilerplate.api.v1.guests import router as guests_router
from boilerplate.core.config import PROJECT_NAME, VERSION
from boilerplate.core.db import close_db, init_db
from boilerplate.core.exception_handlers import setup_exception_handlers
from boilerplate.core.logging import setup_logging
from boilerplate.core.redis import close_redis, init_redis
from boilerplate.core.tracer import setup_tracer, shutdown_tracer

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handles startup and shutdown events."""
    logger.info("Starting %s v%s...", PROJECT_NAME, VERSION)
    await init_db()
    await init_redis()
    yield
    await close_redis()
    await close_db()
    shutdown_tracer()
    logger.info("%s stopped.", PROJECT_NAME)


def create_app() -> FastAPI:
    setup_logging()
    setup_tracer()

    app = FastAPI(
        title=PROJECT_NAME,
        version=VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.include_router(guests_router, prefix="/guests", tags=["Guests"])

    setup_middlewares(app)
    setup_exception_handlers(app)
    FastAPIInstrumentor.instrument_app(app)

    @app.get("/health", status_code=status.HTTP_200_OK)
    async def health_check():
        """Simple health check endpoint."""
        return {"status": "ok", "app_name": PROJECT_NAME}

    return app


app = create_app()
