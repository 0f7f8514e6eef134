import logging

from opentelemetry import context as otel_context
from opentelemetry import trace

from boilerplate.core.context import reset_request_id, set_request_id
from boilerplate.schemas.event import Event, GuestEvent
from boilerplate.services.guest_service import guest_service

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


async def _relay(event: Event[GuestEvent], message_id: str, span_name: str) -> GuestEvent:
    """Restores the producer's trace context and request id, then forwards the guest downstream."""
    token = otel_context.attach(event.extract_tracer_propagator())
    request_token = set_request_id(message_id)
    try:
        with tracer.start_as_current_span(span_name, kind=trace.SpanKind.CONSUMER):
            if event.message is None:
                raise ValueError(f"{event.event_name} event has no message")
            logger.info("Relaying %s for guest %s", event.event_name, event.message.id)
            return await guest_service.process_event(event.message)
    finally:
        reset_request_id(request_token)
        otel_context.detach(token)


async def handle_guest_created(event: Event[GuestEvent], message_id: str) -> GuestEvent:
    """Consumer logic for the guest created topic."""
    return await _relay(event, message_id, "GuestConsumer.handle_guest_created")


async def handle_guest_deleted(event: Event[GuestEvent], message_id: str) -> GuestEvent:
    """Consumer logic for the guest deleted topic."""
    return await _relay(event, message_id, "GuestConsumer.handle_guest_deleted")


async def handle_guest_updated(event: Event[GuestEvent], message_id: str) -> GuestEvent:
    """Consumer logic for the guest updated topic."""
    return await _relay(event, message_id, "GuestConsumer.handle_guest_updated")
