"""
Delayed message queue on Redis sorted sets.

Each topic is a sorted set of message ids scored by the time they become due;
message bodies and attempt counters live in a hash next to it. Publishing with a
delay is just a higher score.

Claiming a message moves its id into the topic's processing set, scored by a
visibility deadline, in one script call. The id leaves the processing set only on
ack or requeue; a message whose deadline passes (the consumer died, or requeue
itself failed) is moved back to the topic set and delivered again.
"""
import logging
import time
from dataclasses import dataclass
from typing import List, Optional

import redis.asyncio as redis

from boilerplate.core.config import EVENT_CONSUMER_VISIBILITY_TIMEOUT
from boilerplate.core.redis import get_broker
from boilerplate.core.uuid import uuid7

logger = logging.getLogger(__name__)

# KEYS: topic set, processing set
# ARGV: now, visibility deadline, limit, message key prefix
CLAIM_SCRIPT = """
local expired = redis.call('ZRANGEBYSCORE', KEYS[2], '-inf', ARGV[1])
for _, id in ipairs(expired) do
    redis.call('ZREM', KEYS[2], id)
    redis.call('ZADD', KEYS[1], ARGV[1], id)
    if redis.call('EXISTS', ARGV[4] .. id) == 1 then
        redis.call('HINCRBY', ARGV[4] .. id, 'attempts', 1)
    end
end
local ids = redis.call('ZRANGEBYSCORE', KEYS[1], '-inf', ARGV[1], 'LIMIT', 0, ARGV[3])
for _, id in ipairs(ids) do
    redis.call('ZREM', KEYS[1], id)
    redis.call('ZADD', KEYS[2], ARGV[2], id)
end
return ids
"""


@dataclass
class QueueMessage:
    id: str
    topic: str
    body: str
    attempts: int = 0


class RedisMessageQueue:
    def __init__(
        self,
        client: Optional[redis.Redis] = None,
        prefix: str = "queue",
        visibility_timeout: float = EVENT_CONSUMER_VISIBILITY_TIMEOUT,
    ):
        self._client = client
        self._prefix = prefix
        self.visibility_timeout = visibility_timeout

    @property
    def client(self) -> redis.Redis:
        return self._client or get_broker()

    def _queue_key(self, topic: str) -> str:
        return f"{self._prefix}:{topic}"

    def _processing_key(self, topic: str) -> str:
        return f"{self._prefix}:{topic}:processing"

    def _message_key(self, topic: str, message_id: str) -> str:
        return f"{self._prefix}:{topic}:msg:{message_id}"

    async def publish(self, topic: str, body: str, delay: float = 0) -> str:
        """Stores the body and schedules it for delivery `delay` seconds from now."""
        message_id = str(uuid7())
        score = time.time() + max(delay, 0)

        pipe = self.client.pipeline()
        pipe.hset(self._message_key(topic, message_id), mapping={"body": body, "attempts": 0})
        pipe.zadd(self._queue_key(topic), {message_id: score})
        await pipe.execute()

        return message_id

    async def receive(self, topic: str, limit: int = 1) -> List[QueueMessage]:
        """
        Claims up to `limit` due messages of a topic. Expired claims are returned
        to the topic first, with their attempt counter incremented.
        """
        now = time.time()
        message_ids = await self.client.eval(
            CLAIM_SCRIPT,
            2,
            self._queue_key(topic),
            self._processing_key(topic),
            now,
            now + self.visibility_timeout,
            limit,
            self._message_key(topic, ""),
        )

        messages = []
        for message_id in message_ids:
            data = await self.client.hgetall(self._message_key(topic, message_id))
            if not data:
                logger.warning("Message %s on %s has no body, skipping", message_id, topic)
                await self.client.zrem(self._processing_key(topic), message_id)
                continue

            messages.append(
                QueueMessage(
                    id=message_id,
                    topic=topic,
                    body=data.get("body", ""),
                    attempts=int(data.get("attempts", 0)),
                )
            )

        return messages

    async def ack(self, message: QueueMessage) -> None:
        pipe = self.client.pipeline()
        pipe.zrem(self._processing_key(message.topic), message.id)
        pipe.delete(self._message_key(message.topic, message.id))
        await pipe.execute()

    async def requeue(self, message: QueueMessage, delay: float) -> None:
        """Puts a claimed message back with its attempt counter incremented."""
        message.attempts += 1
        pipe = self.client.pipeline()
        pipe.hset(self._message_key(message.topic, message.id), "attempts", message.attempts)
        pipe.zrem(self._processing_key(message.topic), message.id)
        pipe.zadd(self._queue_key(message.topic), {message.id: time.time() + delay})
        await pipe.execute()
