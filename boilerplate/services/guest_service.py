"""
Guest use cases.

Reads are cache-aside: the cache is tried first and any cache failure is treated
as a miss. Writes are decided by the database alone; cache invalidation and event
publication run afterwards as post-commit hooks whose failures are only logged.
"""
import asyncio
import logging
import re
from typing import Awaitable, Callable, List, NamedTuple, Optional, Sequence, Tuple

from opentelemetry import trace
from tortoise.expressions import Q

from boilerplate.core.config import (
    GUEST_CACHE_DURATION,
    GUEST_CACHE_ENABLE,
    GUEST_CACHE_KEY_FORMAT,
    GUEST_EVENT_CREATED_ENABLE,
    GUEST_EVENT_CREATED_TOPIC,
    GUEST_EVENT_DELETED_ENABLE,
    GUEST_EVENT_DELETED_TOPIC,
    GUEST_EVENT_UPDATED_ENABLE,
    GUEST_EVENT_UPDATED_TOPIC,
)
from boilerplate.core.errors import NotFoundError, error_code
from boilerplate.repositories import (
    GuestCacheRepository,
    GuestEventProducerRepository,
    GuestRepository,
    WebhookRepository,
)
from boilerplate.schemas.event import Event, GuestEvent
from boilerplate.schemas.guest import (
    CreateGuestRequest,
    DeleteGuestByIDRequest,
    FindAllGuestRequest,
    FindAllGuestResponse,
    FindGuestByIDRequest,
    GuestEntity,
    GuestResponse,
    Sort,
    UpdateGuestByIDRequest,
)

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

CACHE_KEY_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9:_&=-]+")

Hook = Tuple[str, Callable[[], Awaitable[None]]]


class EventSetting(NamedTuple):
    enable: bool
    topic: str


class GuestService:
    def __init__(
        self,
        guest_repository: Optional[GuestRepository] = None,
        guest_cache_repository: Optional[GuestCacheRepository] = None,
        guest_event_producer_repository: Optional[GuestEventProducerRepository] = None,
        webhook_repository: Optional[WebhookRepository] = None,
        cache_enable: bool = GUEST_CACHE_ENABLE,
        cache_key_format: str = GUEST_CACHE_KEY_FORMAT,
        cache_duration: int = GUEST_CACHE_DURATION,
        created_event: EventSetting = EventSetting(GUEST_EVENT_CREATED_ENABLE, GUEST_EVENT_CREATED_TOPIC),
        deleted_event: EventSetting = EventSetting(GUEST_EVENT_DELETED_ENABLE, GUEST_EVENT_DELETED_TOPIC),
        updated_event: EventSetting = EventSetting(GUEST_EVENT_UPDATED_ENABLE, GUEST_EVENT_UPDATED_TOPIC),
    ):
        self.guest_repository = guest_repository or GuestRepository()
        self.guest_cache_repository = guest_cache_repository or GuestCacheRepository()
        self.guest_event_producer_repository = guest_event_producer_repository or GuestEventProducerRepository()
        self.webhook_repository = webhook_repository or WebhookRepository()
        self.cache_enable = cache_enable
        self.cache_key_format = cache_key_format
        self.cache_duration = cache_duration
        self.created_event = created_event
        self.deleted_event = deleted_event
        self.updated_event = updated_event

    # ----------- Cache keys -----------

    def cache_key(self, value: str) -> str:
        return self.cache_key_format.format(value)

    def list_cache_keys(self, request: FindAllGuestRequest) -> Tuple[str, str]:
        """Key of the page and key of its total count, one pair per distinct query."""
        params = f"keyword={request.keyword}&sorts={request.sorts}&take={request.take}&skip={request.skip}"
        list_key = self.cache_key(CACHE_KEY_UNSAFE_CHARS.sub("_", params.strip()))
        return list_key, f"{list_key}:count"

    @staticmethod
    def _log_cache_failure(action: str, key: str, exc: Exception) -> None:
        if isinstance(exc, NotFoundError):
            logger.debug("Cache miss on %s", key)
        elif error_code(exc) >= 500:
            logger.error("Failed to %s cache %s: %r", action, key, exc)
        else:
            logger.warning("Failed to %s cache %s: %r", action, key, exc)

    # ----------- Post-commit hooks -----------

    async def _invalidate_caches(self) -> None:
        if not self.cache_enable:
            return
        keys = await self.guest_cache_repository.keys(self.cache_key("*"))
        if keys:
            await self.guest_cache_repository.delete(*keys)

    async def _publish(self, setting: EventSetting, entity: GuestEntity) -> None:
        event = Event[GuestEvent](event_name=setting.topic, message=GuestEvent.from_entity(entity))
        await self.guest_event_producer_repository.publish(setting.topic, event)

    def _write_hooks(self, setting: EventSetting, entity: GuestEntity) -> List[Hook]:
        hooks: List[Hook] = [("invalidate cache", self._invalidate_caches)]
        if setting.enable:
            hooks.append((f"publish {setting.topic}", lambda: self._publish(setting, entity)))
        return hooks

    async def _run_post_commit_hooks(self, operation: str, hooks: Sequence[Hook]) -> None:
        """Runs every hook in order; a failing hook is logged and never fails the write."""
        for name, hook in hooks:
            try:
                await hook()
            except Exception as exc:
                logger.warning("%s: post-commit hook '%s' failed: %r", operation, name, exc)

    # ----------- Use cases -----------

    async def create(self, request: CreateGuestRequest) -> GuestResponse:
        with tracer.start_as_current_span("GuestService.create"):
            request.validate_fields()
            entity = request.to_entity()

            async with self.guest_repository.begin_transaction() as repository:
                await repository.create(entity)

            response = GuestResponse.from_entity(entity)
            await self._run_post_commit_hooks("create", self._write_hooks(self.created_event, entity))
            return response

    async def delete_by_id(self, request: DeleteGuestByIDRequest) -> None:
        with tracer.start_as_current_span("GuestService.delete_by_id"):
            request.validate_fields()
            condition = Q(id=request.id, deleted_at__isnull=True)

            entity = await self.guest_repository.find_one(condition, use_master=True)
            entity.mark_as_deleted(request.deleted_by)

            async with self.guest_repository.begin_transaction() as repository:
                await repository.update(entity, condition)

            await self._run_post_commit_hooks("delete_by_id", self._write_hooks(self.deleted_event, entity))

    async def _find_list(self, key: str, condition: Q, sorts: List[Sort], take: int, skip: int) -> List[GuestEntity]:
        if self.cache_enable:
            try:
                return await self.guest_cache_repository.get_list(key)
            except Exception as exc:
                self._log_cache_failure("read", key, exc)

        entities = await self.guest_repository.find_all(condition, sorts=sorts, take=take, skip=skip)

        # Empty pages are never cached
        if self.cache_enable and entities:
            try:
                await self.guest_cache_repository.set_list(key, entities, self.cache_duration)
            except Exception as exc:
                self._log_cache_failure("write", key, exc)

        return entities

    async def _count(self, key: str, condition: Q) -> int:
        if self.cache_enable:
            try:
                return await self.guest_cache_repository.get_count(key)
            except Exception as exc:
                self._log_cache_failure("read", key, exc)

        count = await self.guest_repository.count(condition)

        if self.cache_enable and count > 0:
            try:
                await self.guest_cache_repository.set_count(key, count, self.cache_duration)
            except Exception as exc:
                self._log_cache_failure("write", key, exc)

        return count

    async def find_all(self, request: Optional[FindAllGuestRequest] = None) -> FindAllGuestResponse:
        with tracer.start_as_current_span("GuestService.find_all"):
            if request is None:
                request = FindAllGuestRequest()
            request.validate_fields()

            condition, sorts = request.to_filter_and_sorts()
            list_key, count_key = self.list_cache_keys(request)

            # Both branches always finish; the first failure (list before count) wins
            results = await asyncio.gather(
                self._find_list(list_key, condition, sorts, request.take, request.skip),
                self._count(count_key, condition),
                return_exceptions=True,
            )
            for result in results:
                if isinstance(result, BaseException):
                    raise result

            entities, count = results
            return FindAllGuestResponse.from_entities(entities, count)

    async def find_by_id(self, request: FindGuestByIDRequest) -> GuestResponse:
        with tracer.start_as_current_span("GuestService.find_by_id"):
            request.validate_fields()
            key = self.cache_key(str(request.id))

            if self.cache_enable:
                try:
                    entity = await self.guest_cache_repository.get(key)
                    return GuestResponse.from_entity(entity)
                except Exception as exc:
                    self._log_cache_failure("read", key, exc)

            entity = await self.guest_repository.find_one(Q(id=request.id, deleted_at__isnull=True))

            if self.cache_enable:
                try:
                    await self.guest_cache_repository.set(key, entity, self.cache_duration)
                except Exception as exc:
                    self._log_cache_failure("write", key, exc)

            return GuestResponse.from_entity(entity)

    async def update_by_id(self, request: UpdateGuestByIDRequest) -> GuestResponse:
        with tracer.start_as_current_span("GuestService.update_by_id"):
            request.validate_fields()
            condition = Q(id=request.id, deleted_at__isnull=True)

            entity = await self.guest_repository.find_one(condition, use_master=True)
            entity = request.to_existing_entity(entity)

            async with self.guest_repository.begin_transaction() as repository:
                await repository.update(entity, condition)

            response = GuestResponse.from_entity(entity)
            await self._run_post_commit_hooks("update_by_id", self._write_hooks(self.updated_event, entity))
            return response

    async def process_event(self, request: GuestEvent) -> GuestEvent:
        """Forwards a consumed guest event to the webhook; failures propagate so the message is retried."""
        with tracer.start_as_current_span("GuestService.process_event"):
            return await self.webhook_repository.send_guest_event(request)


guest_service = GuestService()
