import json
import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from boilerplate.core.errors import ConflictError, InternalError, NotFoundError
from boilerplate.repositories.guest import GuestCacheRepository
from boilerplate.schemas.guest import GuestEntity


@pytest.fixture
def redis_client():
    client = MagicMock()
    for name in ("get", "set", "delete", "keys", "incr", "expire"):
        setattr(client, name, AsyncMock())
    return client


@pytest.fixture
def cache(redis_client):
    return GuestCacheRepository(client=redis_client)


@pytest.fixture
def guest():
    return GuestEntity(id=uuid.uuid4(), name="John Snow", created_at=1, created_by="creator")


class TestReads:
    @pytest.mark.asyncio
    async def test_get_decodes_entity(self, cache, redis_client, guest):
        redis_client.get.return_value = guest.model_dump_json()
        assert await cache.get("k") == guest

    @pytest.mark.asyncio
    async def test_missing_key_is_not_found(self, cache, redis_client):
        redis_client.get.return_value = None
        with pytest.raises(NotFoundError):
            await cache.get("k")
        with pytest.raises(NotFoundError):
            await cache.get_list("k")
        with pytest.raises(NotFoundError):
            await cache.get_count("k")

    @pytest.mark.asyncio
    async def test_client_failure_is_internal(self, cache, redis_client):
        redis_client.get.side_effect = RedisConnectionError("connection refused")
        with pytest.raises(InternalError):
            await cache.get("k")

    @pytest.mark.asyncio
    async def test_corrupt_value_is_internal(self, cache, redis_client):
        redis_client.get.return_value = "{not json"
        with pytest.raises(InternalError):
            await cache.get("k")

    @pytest.mark.asyncio
    async def test_get_list_and_count(self, cache, redis_client, guest):
        redis_client.get.return_value = json.dumps([guest.model_dump(mode="json")])
        assert await cache.get_list("k") == [guest]

        redis_client.get.return_value = "12"
        assert await cache.get_count("k") == 12


class TestWrites:
    @pytest.mark.asyncio
    async def test_set_stores_json_with_expiry(self, cache, redis_client, guest):
        await cache.set("k", guest, 30)
        key, value = redis_client.set.call_args.args
        assert key == "k"
        assert GuestEntity.model_validate_json(value) == guest
        assert redis_client.set.call_args.kwargs == {"ex": 30}

    @pytest.mark.asyncio
    async def test_set_list_and_count(self, cache, redis_client, guest):
        await cache.set_list("list", [guest], 30)
        assert json.loads(redis_client.set.call_args.args[1])[0]["name"] == "John Snow"

        await cache.set_count("count", 5, 0)
        assert redis_client.set.call_args.args == ("count", "5")
        assert redis_client.set.call_args.kwargs == {"ex": None}

    @pytest.mark.asyncio
    async def test_delete_without_keys_is_noop(self, cache, redis_client):
        await cache.delete()
        redis_client.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delete_missing_keys_is_not_an_error(self, cache, redis_client):
        redis_client.delete.return_value = 0
        await cache.delete("gone:1", "gone:2")
        redis_client.delete.assert_awaited_once_with("gone:1", "gone:2")

    @pytest.mark.asyncio
    async def test_keys(self, cache, redis_client):
        redis_client.keys.return_value = ["a", "b"]
        assert await cache.keys("guests:*") == ["a", "b"]


class TestLock:
    @pytest.mark.asyncio
    async def test_first_lock_succeeds_and_sets_expiry(self, cache, redis_client):
        redis_client.incr.return_value = 1
        await cache.lock("lock:1", 10)
        redis_client.expire.assert_awaited_once_with("lock:1", 10)

    @pytest.mark.asyncio
    async def test_second_lock_conflicts(self, cache, redis_client):
        redis_client.incr.return_value = 2
        with pytest.raises(ConflictError):
            await cache.lock("lock:1", 10)

    @pytest.mark.asyncio
    async def test_lock_without_ttl_never_expires(self, cache, redis_client):
        redis_client.incr.return_value = 1
        await cache.lock("lock:1", 0)
        redis_client.expire.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unlock_missing_lock_is_noop(self, cache, redis_client):
        redis_client.delete.return_value = 0
        await cache.unlock("lock:missing")
        redis_client.delete.assert_awaited_once_with("lock:missing")
