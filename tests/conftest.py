import fakeredis
import pytest
from fakeredis import aioredis

from meetsync.domain.meetings.guest_service import GuestService
from meetsync.domain.meetings.repository import MeetingRepository
from meetsync.domain.meetings.schemas import MeetingCreate
from meetsync.domain.meetings.service import MeetingService
from meetsync.realtime.bus import EventBus


class RecordingBus(EventBus):
    """EventBus that also keeps every published event for assertions"""

    def __init__(self, redis_client):
        super().__init__(redis_client)
        self.events = []

    async def publish(self, event):
        self.events.append(event)
        return await super().publish(event)

    def types(self):
        return [event.type.value for event in self.events]


@pytest.fixture
def redis_client():
    return aioredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)


@pytest.fixture
def repo(redis_client):
    return MeetingRepository(redis_client)


@pytest.fixture
def bus(redis_client):
    return RecordingBus(redis_client)


@pytest.fixture
def service(repo, bus):
    return MeetingService(repo, bus)


@pytest.fixture
def guest_service(repo, bus, redis_client):
    return GuestService(repo, bus, redis_client)


def meeting_input(**overrides):
    data = {
        "title": "Team dinner",
        "dates": ["2026-11-02"],
        "participantNames": ["Ayşe", "Bora", "Cem"],
        "allowGuest": True,
        "startHour": 9,
        "endHour": 11,
    }
    data.update(overrides)
    return MeetingCreate(**data)


@pytest.fixture
def make_meeting(repo):
    """Create a meeting and return (meeting_id, admin_token, participant_ids)"""

    async def _make(**overrides):
        meeting_id, admin_token = await repo.create(meeting_input(**overrides))
        meeting = await repo.get(meeting_id)
        return meeting_id, admin_token, list(meeting.participants)

    return _make
