import pytest
from unittest.mock import patch, AsyncMock, MagicMock
from uuid import uuid4

from boilerplate.consumers.event_consumer import EventConsumer
from boilerplate.consumers.guest_consumer import handle_guest_created, handle_guest_deleted
from boilerplate.core.context import get_request_id
from boilerplate.core.errors import InternalError
from boilerplate.core.queue import QueueMessage
from boilerplate.schemas.event import Event, GuestEvent


def make_event(topic="guest.created"):
    return Event[GuestEvent](event_name=topic, message=GuestEvent(id=str(uuid4()), name="John Snow"))


def make_message(topic="guest.created", body=None, attempts=0):
    if body is None:
        body = make_event(topic).model_dump_json()
    return QueueMessage(id=str(uuid4()), topic=topic, body=body, attempts=attempts)


@pytest.fixture
def queue():
    mock_queue = MagicMock()
    mock_queue.receive = AsyncMock(return_value=[])
    mock_queue.ack = AsyncMock()
    mock_queue.requeue = AsyncMock()
    return mock_queue


@pytest.fixture
def handler():
    return AsyncMock()


@pytest.fixture
def consumer(queue, handler):
    return EventConsumer(queue=queue, handlers={"guest.created": handler}, max_attempts=3, requeue_delay=5)


class TestEventConsumer:

    @pytest.mark.asyncio
    async def test_success_acks(self, consumer, queue, handler):
        """Test a handled message is acknowledged"""
        message = make_message()

        await consumer.dispatch(message)

        event, message_id = handler.call_args.args
        assert event.event_name == "guest.created"
        assert message_id == message.id
        queue.ack.assert_awaited_once_with(message)
        queue.requeue.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failure_requeues(self, consumer, queue, handler):
        """Test a failing handler puts the message back with a delay"""
        handler.side_effect = InternalError("webhook down")
        message = make_message(attempts=1)

        await consumer.dispatch(message)

        queue.requeue.assert_awaited_once_with(message, 5)
        queue.ack.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failure_on_last_attempt_drops(self, consumer, queue, handler):
        handler.side_effect = InternalError("webhook down")
        message = make_message(attempts=2)

        await consumer.dispatch(message)

        queue.ack.assert_awaited_once_with(message)
        queue.requeue.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_topic_is_acked(self, consumer, queue, handler):
        message = make_message(topic="orders.placed")

        await consumer.dispatch(message)

        handler.assert_not_awaited()
        queue.ack.assert_awaited_once_with(message)

    @pytest.mark.asyncio
    async def test_malformed_body_is_dropped(self, consumer, queue, handler):
        message = make_message(body="{broken")

        await consumer.dispatch(message)

        handler.assert_not_awaited()
        queue.ack.assert_awaited_once_with(message)

    @pytest.mark.asyncio
    async def test_poll_dispatches_each_received_message(self, consumer, queue, handler):
        queue.receive.return_value = [make_message(), make_message()]

        handled = await consumer.poll()

        assert handled == 2
        queue.receive.assert_awaited_once_with("guest.created", consumer.batch_size)
        assert handler.await_count == 2

    @pytest.mark.asyncio
    async def test_run_stops(self, consumer, queue):
        consumer.poll_interval = 0.01
        queue.receive.side_effect = lambda topic, limit: consumer.stop() or []

        await consumer.run()

        queue.receive.assert_awaited()

    @pytest.mark.asyncio
    async def test_run_survives_broker_errors(self, consumer, queue):
        consumer.poll_interval = 0.01
        calls = []

        async def receive(topic, limit):
            calls.append(topic)
            if len(calls) == 1:
                raise ConnectionError("broker down")
            consumer.stop()
            return []

        queue.receive.side_effect = receive

        await consumer.run()

        assert len(calls) == 2


class TestGuestHandlers:

    @pytest.mark.asyncio
    async def test_created_event_is_relayed(self):
        """Test the guest is forwarded with the message id as request id"""
        event = make_event()
        seen = {}

        async def process_event(guest):
            seen["request_id"] = get_request_id()
            return guest

        with patch('boilerplate.consumers.guest_consumer.guest_service') as mock_service:
            mock_service.process_event = AsyncMock(side_effect=process_event)

            result = await handle_guest_created(event, "message-1")

        assert result == event.message
        assert seen["request_id"] == "message-1"
        assert get_request_id() != "message-1"

    @pytest.mark.asyncio
    async def test_relay_failure_propagates(self):
        with patch('boilerplate.consumers.guest_consumer.guest_service') as mock_service:
            mock_service.process_event = AsyncMock(side_effect=InternalError("webhook down"))

            with pytest.raises(InternalError):
                await handle_guest_deleted(make_event("guest.deleted"), "message-2")

    @pytest.mark.asyncio
    async def test_event_without_message_fails(self):
        with patch('boilerplate.consumers.guest_consumer.guest_service') as mock_service:
            mock_service.process_event = AsyncMock()

            with pytest.raises(ValueError):
                await handle_guest_created(Event[GuestEvent](event_name="guest.created"), "message-3")

            mock_service.process_event.assert_not_awaited()
