"""Redis Streams job queues.

Provides queue constants plus the delayed-retry set used by the assembly
worker.
"""

from __future__ import annotations

import json
import time
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from redis.asyncio import Redis

    from sitegen.contracts.base import BaseMessage

logger = structlog.get_logger(__name__)

ASSEMBLY_QUEUE = "assembly:queue"
DEPLOY_QUEUE = "deploy:queue"

ASSEMBLY_RESULTS = "assembly:results"
DEPLOY_RESULTS = "deploy:results"

# Sorted set of serialized AssemblyMessages, scored by due time (epoch seconds)
ASSEMBLY_DELAYED = "assembly:delayed"

ASSEMBLY_GROUP = "assembly-workers"
DEPLOY_GROUP = "deploy-workers"

CONSUMER_GROUPS = {
    ASSEMBLY_QUEUE: ASSEMBLY_GROUP,
    DEPLOY_QUEUE: DEPLOY_GROUP,
}


async def ensure_consumer_groups(redis: Redis) -> None:
    """Create consumer groups if they don't exist.

    Should be called on worker startup.

    Args:
        redis: Connected Redis client
    """
    for queue, group in CONSUMER_GROUPS.items():
        try:
            await redis.xgroup_create(queue, group, id="0", mkstream=True)
            logger.info("consumer_group_created", queue=queue, group=group)
        except Exception as e:
            if "BUSYGROUP" in str(e):
                logger.debug("consumer_group_exists", queue=queue, group=group)
            else:
                logger.error("consumer_group_creation_failed", queue=queue, error=str(e))
                raise


async def schedule_retry(redis: Redis, message: BaseMessage, delay_seconds: float) -> float:
    """Park a message in the delayed set until ``now + delay_seconds``.

    Returns:
        The due time as epoch seconds.
    """
    due = time.time() + delay_seconds
    member = json.dumps(message.model_dump(mode="json"))
    await redis.zadd(ASSEMBLY_DELAYED, {member: due})
    logger.info("retry_scheduled", delay_seconds=delay_seconds, due=due)
    return due


async def promote_due(redis: Redis, now: float | None = None, limit: int = 100) -> int:
    """Move due retries back onto the assembly stream.

    Several workers may call this concurrently; only the caller whose ZREM
    removes the member re-publishes it.

    Returns:
        Number of messages promoted by this caller.
    """
    now = time.time() if now is None else now
    members = await redis.zrangebyscore(ASSEMBLY_DELAYED, "-inf", now, start=0, num=limit)
    promoted = 0
    for member in members:
        if await redis.zrem(ASSEMBLY_DELAYED, member):
            await redis.xadd(ASSEMBLY_QUEUE, {"data": member})
            promoted += 1
    if promoted:
        logger.info("retries_promoted", count=promoted)
    return promoted


async def get_pending_job_count(redis: Redis, queue: str) -> int:
    """Get count of delivered but unacknowledged jobs in a queue.

    Args:
        redis: Connected Redis client
        queue: Queue stream name

    Returns:
        Number of pending jobs
    """
    group = CONSUMER_GROUPS.get(queue, ASSEMBLY_GROUP)
    try:
        info = await redis.xpending(queue, group)
    except Exception as e:
        logger.warning("pending_count_failed", queue=queue, error=str(e))
        return 0
    return info.get("pending", 0) if isinstance(info, dict) else 0


async def get_queue_counts(redis: Redis) -> dict[str, int]:
    """Stream length, pending and delayed counts of the assembly queue."""
    return {
        "stream_length": await redis.xlen(ASSEMBLY_QUEUE),
        "pending": await get_pending_job_count(redis, ASSEMBLY_QUEUE),
        "delayed": await redis.zcard(ASSEMBLY_DELAYED),
    }
