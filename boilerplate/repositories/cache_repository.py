import logging
from typing import Generic, List, Optional, Type, TypeVar

import redis.asyncio as redis
from opentelemetry import trace
from pydantic import BaseModel, TypeAdapter, ValidationError
from redis.exceptions import RedisError

from boilerplate.core.errors import ConflictError, InternalError, NotFoundError
from boilerplate.core.redis import get_redis

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

EntityT = TypeVar("EntityT", bound=BaseModel)


class CacheRepository(Generic[EntityT]):
    """
    Typed key-value access to Redis.

    Values are stored as JSON strings. A missing key is reported as NotFoundError so
    callers can tell a miss from a broken cache (InternalError).
    """

    entity: Type[EntityT]

    def __init__(self, client: Optional[redis.Redis] = None):
        self._client = client
        self._list_adapter = TypeAdapter(List[self.entity])

    @property
    def client(self) -> redis.Redis:
        return self._client or get_redis()

    async def _get_raw(self, key: str) -> str:
        try:
            raw = await self.client.get(key)
        except RedisError as exc:
            logger.error("Failed to get %s: %s", key, exc)
            raise InternalError(str(exc)) from exc
        if raw is None:
            raise NotFoundError(f"{key} not found")
        return raw

    async def get(self, key: str) -> EntityT:
        with tracer.start_as_current_span("CacheRepository.get"):
            raw = await self._get_raw(key)
            try:
                return self.entity.model_validate_json(raw)
            except ValidationError as exc:
                logger.error("Failed to decode %s: %s", key, exc)
                raise InternalError(str(exc)) from exc

    async def get_list(self, key: str) -> List[EntityT]:
        with tracer.start_as_current_span("CacheRepository.get_list"):
            raw = await self._get_raw(key)
            try:
                return self._list_adapter.validate_json(raw)
            except ValidationError as exc:
                logger.error("Failed to decode %s: %s", key, exc)
                raise InternalError(str(exc)) from exc

    async def get_count(self, key: str) -> int:
        with tracer.start_as_current_span("CacheRepository.get_count"):
            raw = await self._get_raw(key)
            try:
                count = int(raw)
            except ValueError as exc:
                logger.error("Failed to decode %s: %s", key, exc)
                raise InternalError(str(exc)) from exc
            if count < 0:
                raise InternalError(f"{key} holds a negative count")
            return count

    async def _set_raw(self, key: str, value: str, ttl: int) -> None:
        try:
            await self.client.set(key, value, ex=ttl if ttl > 0 else None)
        except RedisError as exc:
            logger.error("Failed to set %s: %s", key, exc)
            raise InternalError(str(exc)) from exc

    async def set(self, key: str, value: EntityT, ttl: int) -> None:
        with tracer.start_as_current_span("CacheRepository.set"):
            await self._set_raw(key, value.model_dump_json(), ttl)

    async def set_list(self, key: str, values: List[EntityT], ttl: int) -> None:
        with tracer.start_as_current_span("CacheRepository.set_list"):
            await self._set_raw(key, self._list_adapter.dump_json(values).decode(), ttl)

    async def set_count(self, key: str, value: int, ttl: int) -> None:
        with tracer.start_as_current_span("CacheRepository.set_count"):
            await self._set_raw(key, str(value), ttl)

    async def delete(self, *keys: str) -> None:
        """Removes keys; missing keys are ignored."""
        if not keys:
            return
        with tracer.start_as_current_span("CacheRepository.delete"):
            try:
                await self.client.delete(*keys)
            except RedisError as exc:
                logger.error("Failed to delete %d keys: %s", len(keys), exc)
                raise InternalError(str(exc)) from exc

    async def keys(self, pattern: str) -> List[str]:
        with tracer.start_as_current_span("CacheRepository.keys"):
            try:
                return list(await self.client.keys(pattern))
            except RedisError as exc:
                logger.error("Failed to list keys matching %s: %s", pattern, exc)
                raise InternalError(str(exc)) from exc

    async def lock(self, key: str, ttl: int) -> None:
        """
        Increment-based lock: the first caller sees 1, everyone else gets ConflictError.
        The expiry is set after the increment, not atomically with it.
        """
        with tracer.start_as_current_span("CacheRepository.lock"):
            try:
                counter = await self.client.incr(key)
            except RedisError as exc:
                logger.error("Failed to lock %s: %s", key, exc)
                raise InternalError(str(exc)) from exc

            if ttl > 0:
                try:
                    await self.client.expire(key, ttl)
                except RedisError as exc:
                    logger.error("Failed to set expiry on lock %s: %s", key, exc)
                    raise InternalError(str(exc)) from exc

            if counter > 1:
                raise ConflictError(f"{key} is already locked")

    async def unlock(self, key: str) -> None:
        await self.delete(key)
