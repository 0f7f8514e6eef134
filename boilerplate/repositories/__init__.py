from .guest import GuestCacheRepository, GuestEventProducerRepository, GuestRepository
from .webhook_repository import WebhookRepository

__all__ = [
    "GuestCacheRepository",
    "GuestEventProducerRepository",
    "GuestRepository",
    "WebhookRepository",
]
