import json

import httpx
import pytest

from boilerplate.core.errors import InternalError
from boilerplate.repositories.webhook_repository import WebhookRepository
from boilerplate.schemas.event import GuestEvent


@pytest.fixture
def guest_event():
    return GuestEvent(id="01932293-d710-7f55-a9f6-66e6248ae72f", name="John Snow", created_at=1, created_by="creator")


def make_repository(handler):
    return WebhookRepository(
        base_url="http://webhook.test",
        endpoint="/guests",
        timeout=1,
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_posts_event_as_json(guest_event):
    received = []

    def handler(request: httpx.Request):
        received.append(request)
        return httpx.Response(200)

    result = await make_repository(handler).send_guest_event(guest_event)

    assert result == guest_event
    request = received[0]
    assert request.method == "POST"
    assert str(request.url) == "http://webhook.test/guests"
    assert request.headers["Content-Type"] == "application/json"
    assert json.loads(request.content)["name"] == "John Snow"


@pytest.mark.asyncio
async def test_error_status_is_internal(guest_event):
    repository = make_repository(lambda request: httpx.Response(502))

    with pytest.raises(InternalError, match="502"):
        await repository.send_guest_event(guest_event)


@pytest.mark.asyncio
async def test_transport_failure_is_internal(guest_event):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(InternalError):
        await make_repository(handler).send_guest_event(guest_event)
