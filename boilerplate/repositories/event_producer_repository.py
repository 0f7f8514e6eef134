import logging
from typing import Generic, Optional, TypeVar

from opentelemetry import trace
from pydantic import BaseModel

from boilerplate.core.errors import InternalError
from boilerplate.core.queue import RedisMessageQueue
from boilerplate.schemas.event import Event

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

MessageT = TypeVar("MessageT", bound=BaseModel)


class EventProducerRepository(Generic[MessageT]):
    def __init__(self, queue: Optional[RedisMessageQueue] = None):
        self.queue = queue or RedisMessageQueue()

    async def publish(self, topic: str, event: Event[MessageT]) -> None:
        await self.publish_with_delay(topic, 0, event)

    async def publish_with_delay(self, topic: str, delay: float, event: Event[MessageT]) -> None:
        """Stamps the current trace context on the envelope and hands it to the broker."""
        with tracer.start_as_current_span("EventProducerRepository.publish") as span:
            span.set_attribute("messaging.destination.name", topic)
            event.inject_tracer_propagator()
            try:
                body = event.model_dump_json()
                message_id = await self.queue.publish(topic, body, delay=delay)
            except Exception as exc:
                span.record_exception(exc)
                logger.error("Failed to publish %s to %s: %s", event.event_name, topic, exc)
                raise InternalError(str(exc)) from exc
            logger.debug("Published %s to %s as %s", event.event_name, topic, message_id)
