import asyncio
from contextlib import aclosing
from unittest.mock import AsyncMock

from redis.exceptions import ConnectionError as RedisConnectionError

from meetsync.realtime.bus import EventBus, parse_event
from meetsync.realtime.events import EventType, MeetingEvent

MEETING_ID = "aaaaaaaaaa"


def test_wire_format_omits_empty_fields():
    event = MeetingEvent(type=EventType.MEETING_FROZEN, meetingId=MEETING_ID)
    assert event.to_wire() == '{"type":"MEETING_FROZEN","meetingId":"aaaaaaaaaa"}'
    assert event.room_payload() == {"type": "MEETING_FROZEN"}


def test_parse_event_skips_malformed():
    assert parse_event("not json") is None
    assert parse_event('{"type": "NOPE", "meetingId": "x"}') is None
    assert parse_event('{"meetingId": "x"}') is None
    assert parse_event(None) is None
    parsed = parse_event(b'{"type": "SESSION_RESET", "meetingId": "aaaaaaaaaa", "userId": "u"}')
    assert parsed.type is EventType.SESSION_RESET
    assert parsed.userId == "u"


async def test_publish_without_subscribers(redis_client):
    bus = EventBus(redis_client)
    event = MeetingEvent(type=EventType.MEETING_FROZEN, meetingId=MEETING_ID)
    assert await bus.publish(event) == 0


async def test_publish_failure_is_swallowed(redis_client):
    bus = EventBus(redis_client)
    bus.redis = AsyncMock()
    bus.redis.publish.side_effect = RedisConnectionError("down")
    event = MeetingEvent(type=EventType.MEETING_FROZEN, meetingId=MEETING_ID)
    assert await bus.publish(event) == 0


async def test_listen_yields_events_and_skips_garbage(redis_client):
    bus = EventBus(redis_client)
    received = []

    async def consume():
        async with aclosing(bus.listen()) as events:
            async for event in events:
                received.append(event)
                if len(received) == 2:
                    return

    task = asyncio.create_task(consume())
    # Malformed warm-up messages until the subscriber is attached
    for _ in range(200):
        if await redis_client.publish(bus.channel, "warming up") >= 1:
            break
        await asyncio.sleep(0.01)

    await bus.publish(MeetingEvent(type=EventType.MEETING_FROZEN, meetingId=MEETING_ID))
    await bus.publish(
        MeetingEvent(type=EventType.SLOTS_UPDATED, meetingId=MEETING_ID, slots=["d0_h9"])
    )
    await asyncio.wait_for(task, timeout=5)

    assert [e.type for e in received] == [EventType.MEETING_FROZEN, EventType.SLOTS_UPDATED]
    assert received[1].slots == ["d0_h9"]
