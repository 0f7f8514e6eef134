import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional

from pydantic import ValidationError

from boilerplate.core.config import (
    EVENT_CONSUMER_BATCH_SIZE,
    EVENT_CONSUMER_MAX_ATTEMPTS,
    EVENT_CONSUMER_POLL_INTERVAL,
    EVENT_CONSUMER_REQUEUE_DELAY,
    GUEST_EVENT_CREATED_ENABLE,
    GUEST_EVENT_CREATED_TOPIC,
    GUEST_EVENT_DELETED_ENABLE,
    GUEST_EVENT_DELETED_TOPIC,
    GUEST_EVENT_UPDATED_ENABLE,
    GUEST_EVENT_UPDATED_TOPIC,
)
from boilerplate.consumers.guest_consumer import (
    handle_guest_created,
    handle_guest_deleted,
    handle_guest_updated,
)
from boilerplate.core.queue import QueueMessage, RedisMessageQueue
from boilerplate.schemas.event import Event, GuestEvent

logger = logging.getLogger(__name__)

Handler = Callable[[Event[GuestEvent], str], Awaitable[object]]


def default_handlers() -> Dict[str, Handler]:
    """Topic to handler routing; disabled events are not consumed."""
    handlers: Dict[str, Handler] = {}
    if GUEST_EVENT_CREATED_ENABLE:
        handlers[GUEST_EVENT_CREATED_TOPIC] = handle_guest_created
    if GUEST_EVENT_DELETED_ENABLE:
        handlers[GUEST_EVENT_DELETED_TOPIC] = handle_guest_deleted
    if GUEST_EVENT_UPDATED_ENABLE:
        handlers[GUEST_EVENT_UPDATED_TOPIC] = handle_guest_updated
    return handlers


class EventConsumer:
    def __init__(
        self,
        queue: Optional[RedisMessageQueue] = None,
        handlers: Optional[Dict[str, Handler]] = None,
        batch_size: int = EVENT_CONSUMER_BATCH_SIZE,
        max_attempts: int = EVENT_CONSUMER_MAX_ATTEMPTS,
        requeue_delay: float = EVENT_CONSUMER_REQUEUE_DELAY,
        poll_interval: float = EVENT_CONSUMER_POLL_INTERVAL,
    ):
        self.queue = queue or RedisMessageQueue()
        self.handlers = default_handlers() if handlers is None else handlers
        self.batch_size = batch_size
        self.max_attempts = max_attempts
        self.requeue_delay = requeue_delay
        self.poll_interval = poll_interval
        self._stopped = asyncio.Event()

    async def dispatch(self, message: QueueMessage) -> None:
        """Routes a message to its topic handler; ack on success, requeue on failure."""
        handler = self.handlers.get(message.topic)
        if handler is None:
            logger.warning("No handler found for topic: %s", message.topic)
            await self.queue.ack(message)
            return

        try:
            event = Event[GuestEvent].model_validate_json(message.body)
        except ValidationError as exc:
            # Redelivery cannot fix a malformed body
            logger.error("Dropping unparseable message %s on %s: %s", message.id, message.topic, exc)
            await self.queue.ack(message)
            return

        try:
            await handler(event, message.id)
        except Exception as exc:
            if message.attempts + 1 >= self.max_attempts:
                logger.error(
                    "Dropping message %s on %s after %d attempts: %r",
                    message.id, message.topic, message.attempts + 1, exc,
                )
                await self.queue.ack(message)
                return
            logger.warning("Message %s on %s failed, requeueing: %r", message.id, message.topic, exc)
            await self.queue.requeue(message, self.requeue_delay)
            return

        await self.queue.ack(message)

    async def poll(self) -> int:
        """Receives and dispatches one batch per topic; returns how many messages were handled."""
        handled = 0
        for topic in self.handlers:
            for message in await self.queue.receive(topic, self.batch_size):
                await self.dispatch(message)
                handled += 1
        return handled

    async def run(self) -> None:
        """Main loop for the consumer service."""
        logger.info("--- Event Consumer Started (topics: %s) ---", ", ".join(self.handlers))
        while not self._stopped.is_set():
            try:
                await self.poll()
            except Exception as exc:
                logger.error("Consumer encountered a broker error: %r", exc)

            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass
        logger.info("--- Event Consumer Stopped ---")

    def stop(self) -> None:
        self._stopped.set()
