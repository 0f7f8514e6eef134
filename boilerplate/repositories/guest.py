from boilerplate.models.guest import Guest
from boilerplate.repositories.cache_repository import CacheRepository
from boilerplate.repositories.database_repository import DatabaseRepository
from boilerplate.repositories.event_producer_repository import EventProducerRepository
from boilerplate.schemas.event import GuestEvent
from boilerplate.schemas.guest import GuestEntity


class GuestRepository(DatabaseRepository[GuestEntity]):
    model = Guest
    entity = GuestEntity


class GuestCacheRepository(CacheRepository[GuestEntity]):
    entity = GuestEntity


class GuestEventProducerRepository(EventProducerRepository[GuestEvent]):
    pass
