import logging
from typing import Optional

import redis.asyncio as redis

from boilerplate.core.config import EVENT_BROKER_URL, REDIS_URL

logger = logging.getLogger(__name__)

_cache_client: Optional[redis.Redis] = None
_broker_client: Optional[redis.Redis] = None


async def init_redis():
    """Opens the cache and message broker clients and checks they answer."""
    global _cache_client, _broker_client
    _cache_client = redis.from_url(REDIS_URL, decode_responses=True)
    _broker_client = redis.from_url(EVENT_BROKER_URL, decode_responses=True)
    await _cache_client.ping()
    await _broker_client.ping()
    logger.info("Redis connections established")


async def close_redis():
    global _cache_client, _broker_client
    for client in (_cache_client, _broker_client):
        if client is not None:
            await client.aclose()
    _cache_client = None
    _broker_client = None
    logger.info("Redis connections closed")


def get_redis() -> redis.Redis:
    if _cache_client is None:
        raise RuntimeError("Redis cache client is not initialized, call init_redis() first")
    return _cache_client


def get_broker() -> redis.Redis:
    if _broker_client is None:
        raise RuntimeError("Redis broker client is not initialized, call init_redis() first")
    return _broker_client
