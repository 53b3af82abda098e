from dataclasses import dataclass
import json
from typing import Any

import redis.asyncio as redis
import structlog

from sitegen.contracts.base import BaseMessage

logger = structlog.get_logger(__name__)


@dataclass
class StreamMessage:
    """A message from a Redis Stream."""

    message_id: str
    data: dict[str, Any]


def _decode(message_id: str, fields: dict[str, str] | None) -> StreamMessage | None:
    if not fields:
        return None
    try:
        data = json.loads(fields.get("data", "{}"))
    except json.JSONDecodeError as e:
        logger.error("message_parse_failed", message_id=message_id, error=str(e))
        data = {}
    return StreamMessage(message_id=message_id, data=data)


class RedisStreamClient:
    """Client for Redis Streams-based message passing.

    Consumers read through :meth:`read_group` and acknowledge with :meth:`ack`
    once the message has been fully handled. Un-acked messages stay in the
    group's pending list and are picked up again by :meth:`reclaim_stale`.
    """

    def __init__(self, redis_url: str | None = None, client: redis.Redis | None = None):
        """Initialize Redis client.

        Args:
            redis_url: Redis connection URL.
            client: Already constructed client (tests pass a fakeredis instance).
        """
        if redis_url is None and client is None:
            raise RuntimeError("Redis URL not provided. Pass redis_url or set REDIS_URL.")
        self.redis_url = redis_url
        self._redis: redis.Redis | None = client

    async def connect(self) -> None:
        """Connect to Redis."""
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url, decode_responses=True)
            logger.info("redis_connected")

    async def close(self) -> None:
        """Close Redis connection."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            logger.info("redis_connection_closed")

    @property
    def redis(self) -> redis.Redis:
        """Get Redis client, ensuring connection."""
        if self._redis is None:
            raise RuntimeError("Redis not connected. Call connect() first.")
        return self._redis

    async def publish(self, stream: str, data: dict[str, Any]) -> str:
        """Publish a dict to a Redis Stream."""
        message = {"data": json.dumps(data)}
        message_id = await self.redis.xadd(stream, message)
        logger.debug("message_published", stream=stream, message_id=message_id)
        return message_id

    async def publish_message(self, stream: str, message: BaseMessage) -> str:
        """Publish a Pydantic DTO to a Redis Stream."""
        return await self.publish(stream, message.model_dump(mode="json"))

    async def ensure_consumer_group(self, stream: str, group: str) -> None:
        """Ensure a consumer group exists for the stream."""
        try:
            await self.redis.xgroup_create(stream, group, id="0", mkstream=True)
            logger.info("consumer_group_created", stream=stream, group=group)
        except redis.ResponseError as e:
            if "BUSYGROUP" in str(e):
                logger.debug("consumer_group_exists", stream=stream, group=group)
            else:
                raise

    async def read_group(
        self,
        stream: str,
        group: str,
        consumer: str,
        count: int = 1,
        block_ms: int = 5000,
    ) -> list[StreamMessage]:
        """Read new messages for ``consumer``. Returns [] when the block times out."""
        response = await self.redis.xreadgroup(
            groupname=group,
            consumername=consumer,
            streams={stream: ">"},
            count=count,
            block=block_ms,
        )
        messages: list[StreamMessage] = []
        for _stream_name, stream_messages in response or []:
            for message_id, fields in stream_messages:
                message = _decode(message_id, fields)
                if message is not None:
                    messages.append(message)
        return messages

    async def ack(self, stream: str, group: str, message_id: str) -> None:
        await self.redis.xack(stream, group, message_id)

    async def renew_claim(self, stream: str, group: str, consumer: str, message_id: str) -> bool:
        """Reset the idle time of a pending message this consumer still owns.

        Returns False when the message is no longer pending.
        """
        claimed = await self.redis.xclaim(
            stream, group, consumer, min_idle_time=0, message_ids=[message_id], justid=True
        )
        return bool(claimed)
        logger.debug("message_acked", stream=stream, message_id=message_id)

    async def reclaim_stale(
        self,
        stream: str,
        group: str,
        consumer: str,
        min_idle_ms: int,
        count: int = 10,
    ) -> list[StreamMessage]:
        """Take over messages another consumer read but never acknowledged."""
        response = await self.redis.xautoclaim(
            stream, group, consumer, min_idle_time=min_idle_ms, start_id="0-0", count=count
        )
        claimed = response[1] if len(response) > 1 else []
        messages = []
        for message_id, fields in claimed:
            message = _decode(message_id, fields)
            if message is None:
                # trimmed from the stream while pending
                await self.ack(stream, group, message_id)
                continue
            messages.append(message)
        if messages:
            logger.warning(
                "stale_messages_reclaimed",
                stream=stream,
                consumer=consumer,
                count=len(messages),
            )
        return messages
