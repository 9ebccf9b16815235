"""
Redis Pub/Sub fan-out bus

Publishers (the API) and the subscriber (the relay) share a single channel.
Delivery is best-effort: an event that nobody hears is simply lost.
"""

import json
import logging
from typing import AsyncIterator, Optional

import redis.asyncio as redis
from pydantic import ValidationError
from redis.exceptions import RedisError

from .. import config
from .events import MeetingEvent

logger = logging.getLogger(__name__)


class EventBus:
    """Publish/subscribe wrapper around one Redis channel"""

    def __init__(self, redis_client: redis.Redis, channel: Optional[str] = None):
        self.redis = redis_client
        self.channel = channel or config.UPDATES_CHANNEL

    async def publish(self, event: MeetingEvent) -> int:
        """
        Publish an event; returns the number of subscribers that received it.

        Failures are logged and reported as zero receivers: the write that
        triggered the event has already happened and viewers recover by re-fetching.
        """
        try:
            receivers = await self.redis.publish(self.channel, event.to_wire())
            logger.debug(
                f"📤 Published {event.type.value} for meeting {event.meetingId} "
                f"({receivers} subscribers)"
            )
            return receivers
        except RedisError as e:
            logger.warning(
                f"⚠️ Failed to publish {event.type.value} for meeting {event.meetingId}: {e}"
            )
            return 0

    async def listen(self) -> AsyncIterator[MeetingEvent]:
        """
        Yield events from the channel until the connection drops.
        Malformed messages are skipped.
        """
        pubsub = self.redis.pubsub(ignore_subscribe_messages=True)
        await pubsub.subscribe(self.channel)
        logger.info(f"📡 Subscribed to {self.channel} channel")
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                event = parse_event(message.get("data"))
                if event is not None:
                    yield event
        finally:
            try:
                await pubsub.unsubscribe(self.channel)
                await pubsub.aclose()
            except RedisError as e:
                logger.debug(f"Pub/Sub cleanup failed: {e}")


def parse_event(raw) -> Optional[MeetingEvent]:
    """Decode a wire envelope, or None if it is not a valid event"""
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    try:
        return MeetingEvent.model_validate(json.loads(raw))
    except (TypeError, ValueError, ValidationError) as e:
        logger.error(f"❌ Failed to parse message: {e}")
        return None
