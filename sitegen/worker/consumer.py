"""Consumer-group loop shared by the assembly and deploy consumers."""

import asyncio
from collections.abc import Awaitable, Callable
import time

import redis.asyncio as redis
import structlog

from sitegen.redis_client import RedisStreamClient, StreamMessage

logger = structlog.get_logger()

# Returns True when the message may be acknowledged
MessageHandler = Callable[[StreamMessage, bool], Awaitable[bool]]


class StreamConsumer:
    """Reads one stream as one named consumer of a group.

    Each loop iteration runs ``before_poll`` (if set), reclaims messages other
    consumers left un-acked for longer than ``visibility_timeout_ms``, then
    blocks for new messages. Messages are acknowledged only when the handler
    returns True; anything else stays pending and is redelivered. While a
    handler runs its claim is renewed every third of the visibility timeout,
    so long builds are not reclaimed by a sibling.
    """

    def __init__(
        self,
        stream_client: RedisStreamClient,
        stream: str,
        group: str,
        consumer_name: str,
        handler: MessageHandler,
        *,
        block_ms: int = 5000,
        visibility_timeout_ms: int = 15 * 60 * 1000,
        before_poll: Callable[[], Awaitable[object]] | None = None,
    ):
        self.stream_client = stream_client
        self.stream = stream
        self.group = group
        self.consumer_name = consumer_name
        self.handler = handler
        self.block_ms = block_ms
        self.visibility_timeout_ms = visibility_timeout_ms
        self.before_poll = before_poll
        self.running = False
        self._reclaim_interval = min(visibility_timeout_ms / 2000, 30.0)
        self._last_reclaim = 0.0

    async def poll_once(self) -> int:
        """One iteration of the loop. Returns the number of messages handled."""
        if self.before_poll is not None:
            await self.before_poll()

        handled = 0
        now = time.monotonic()
        if now - self._last_reclaim >= self._reclaim_interval:
            self._last_reclaim = now
            for message in await self.stream_client.reclaim_stale(
                self.stream, self.group, self.consumer_name, self.visibility_timeout_ms
            ):
                await self.dispatch(message, reclaimed=True)
                handled += 1

        for message in await self.stream_client.read_group(
            self.stream, self.group, self.consumer_name, count=1, block_ms=self.block_ms
        ):
            await self.dispatch(message)
            handled += 1
        return handled

    async def dispatch(self, message: StreamMessage, reclaimed: bool = False) -> bool:
        heartbeat = asyncio.create_task(self._keep_claimed(message.message_id))
        try:
            ack = await self.handler(message, reclaimed)
        except Exception as e:
            logger.error(
                "message_processing_failed",
                stream=self.stream,
                message_id=message.message_id,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            # Don't ACK - message will be reclaimed after the visibility timeout
            ack = False
        finally:
            heartbeat.cancel()
            await asyncio.gather(heartbeat, return_exceptions=True)
        if ack:
            await self.stream_client.ack(self.stream, self.group, message.message_id)
        return ack

    async def _keep_claimed(self, message_id: str) -> None:
        interval = self.visibility_timeout_ms / 3000
        while True:
            await asyncio.sleep(interval)
            try:
                await self.stream_client.renew_claim(
                    self.stream, self.group, self.consumer_name, message_id
                )
            except redis.RedisError as e:
                logger.warning(
                    "claim_renew_failed",
                    stream=self.stream,
                    message_id=message_id,
                    error=str(e),
                )

    async def run(self) -> None:
        """Run until :meth:`stop` is called. An in-flight message is always finished."""
        await self.stream_client.ensure_consumer_group(self.stream, self.group)
        self.running = True
        logger.info(
            "stream_consumer_started",
            stream=self.stream,
            group=self.group,
            consumer=self.consumer_name,
        )

        while self.running:
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                logger.info("stream_consumer_cancelled", stream=self.stream)
                break
            except redis.ResponseError as e:
                if "NOGROUP" in str(e):
                    logger.warning(
                        "consumer_group_lost_recreating", stream=self.stream, group=self.group
                    )
                    await self.stream_client.ensure_consumer_group(self.stream, self.group)
                else:
                    logger.error("stream_consumer_redis_error", stream=self.stream, error=str(e))
                    await asyncio.sleep(1)
            except Exception as e:
                logger.error(
                    "stream_consumer_error",
                    stream=self.stream,
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )
                await asyncio.sleep(1)

        logger.info("stream_consumer_stopped", stream=self.stream, consumer=self.consumer_name)

    def stop(self) -> None:
        self.running = False
