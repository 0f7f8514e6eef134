import logging
from typing import Optional

import httpx
from opentelemetry import trace

from boilerplate.core.config import WEBHOOK_BASE_URL, WEBHOOK_ENDPOINT, WEBHOOK_TIMEOUT
from boilerplate.core.errors import InternalError
from boilerplate.core.tracer import inject_carrier
from boilerplate.schemas.event import GuestEvent

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class WebhookRepository:
    """Relays guest events to an external HTTP endpoint."""

    def __init__(
        self,
        base_url: str = WEBHOOK_BASE_URL,
        endpoint: str = WEBHOOK_ENDPOINT,
        timeout: float = WEBHOOK_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        self.endpoint = endpoint
        self.timeout = timeout
        self.transport = transport

    async def send_guest_event(self, event: GuestEvent) -> GuestEvent:
        with tracer.start_as_current_span("WebhookRepository.send_guest_event"):
            headers = {"Content-Type": "application/json", **inject_carrier()}
            try:
                async with httpx.AsyncClient(
                    base_url=self.base_url, timeout=self.timeout, transport=self.transport
                ) as client:
                    response = await client.post(self.endpoint, content=event.model_dump_json(), headers=headers)
                    response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                logger.error("Webhook answered %s for guest %s", exc.response.status_code, event.id)
                raise InternalError(f"webhook responded with status {exc.response.status_code}") from exc
            except httpx.HTTPError as exc:
                logger.error("Webhook request for guest %s failed: %s", event.id, exc)
                raise InternalError(str(exc)) from exc

            return event
