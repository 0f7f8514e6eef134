import logging

from tortoise import Tortoise

from boilerplate.core.config import (
    DATABASE_MASTER_MAX_CONNECTIONS,
    DATABASE_MASTER_URL,
    DATABASE_SLAVE_MAX_CONNECTIONS,
    DATABASE_SLAVE_URL,
)

logger = logging.getLogger(__name__)

MASTER = "master"
SLAVE = "slave"

# Define all models modules for the ORM
MODELS_MODULES = [
    "boilerplate.models.guest",
]


def _with_pool(url: str, max_size: int) -> str:
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}maxsize={max_size}"


TORTOISE_CONFIG = {
    "connections": {
        MASTER: _with_pool(DATABASE_MASTER_URL, DATABASE_MASTER_MAX_CONNECTIONS),
        SLAVE: _with_pool(DATABASE_SLAVE_URL, DATABASE_SLAVE_MAX_CONNECTIONS),
    },
    "apps": {
        "models": {
            "models": MODELS_MODULES,
            "default_connection": MASTER,
        },
    },
}


async def init_db(generate_schemas: bool = False):
    """Initializes the primary and replica connections."""
    try:
        await Tortoise.init(config=TORTOISE_CONFIG)
        if generate_schemas:
            # Create missing tables on the primary
            await Tortoise.generate_schemas(safe=True)
        logger.info("Database connections established")
    except Exception:
        logger.exception("Could not connect to database")
        # Re-raise to prevent the application from starting without a database
        raise


async def close_db():
    """Closes all database connections."""
    await Tortoise.close_connections()
    logger.info("Database connections closed")
