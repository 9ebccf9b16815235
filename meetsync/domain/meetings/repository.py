"""
Meeting repository - Redis storage for meeting documents

Key layout (all keys expire together at the meeting's expiresAt):
    meeting:{id}                      hash   meta fields + schedule (JSON)
    meeting:{id}:roster               list   participant IDs in insertion order
    meeting:{id}:participant:{pid}    hash   name, status, slots (JSON), device_token
    meeting:{id}:guests               list   guest requests (JSON)

Every mutator writes only the fields it owns. Writes that depend on a previous
read (claims, guest approval, status-gated updates) run as WATCH/MULTI
transactions and retry a bounded number of times on contention.
"""

import json
import logging
import time
from typing import Awaitable, Callable, Optional, TypeVar

import redis.asyncio as redis
from redis.asyncio.client import Pipeline
from redis.exceptions import WatchError

from ... import config
from ...errors import (
    AlreadyClaimedError,
    AlreadyFinalizedError,
    CreationError,
    GuestsNotAllowedError,
    InvalidInputError,
    MeetingFrozenError,
    NotFoundError,
    UnauthorizedError,
    UnavailableError,
)
from ...security_utils import constant_time_compare
from ...shared.slots import clip_slots, decode_slot, encode_slot, slot_in_grid
from ...tokens import new_admin_token, new_meeting_id, new_participant_id
from .projection import project_meeting
from .schemas import (
    GuestRequest,
    Meeting,
    MeetingCreate,
    MeetingMeta,
    Participant,
    PublicMeeting,
    Schedule,
)

logger = logging.getLogger(__name__)

MEETING_PREFIX = "meeting:"
MAX_ID_ATTEMPTS = 5
MAX_WATCH_RETRIES = 10

T = TypeVar("T")


def meeting_key(meeting_id: str) -> str:
    return f"{MEETING_PREFIX}{meeting_id}"


def roster_key(meeting_id: str) -> str:
    return f"{MEETING_PREFIX}{meeting_id}:roster"


def participant_key(meeting_id: str, participant_id: str) -> str:
    return f"{MEETING_PREFIX}{meeting_id}:participant:{participant_id}"


def guests_key(meeting_id: str) -> str:
    return f"{MEETING_PREFIX}{meeting_id}:guests"


def _now_ms() -> int:
    return int(time.time() * 1000)


def _participant_fields(participant: Participant) -> dict[str, str]:
    fields = {
        "name": participant.name,
        "status": participant.status,
        "slots": json.dumps(participant.slots),
    }
    if participant.deviceToken is not None:
        fields["device_token"] = participant.deviceToken
    return fields


def _participant_from_hash(data: dict[str, str]) -> Participant:
    return Participant(
        name=data["name"],
        status=data.get("status", "approved"),
        deviceToken=data.get("device_token"),
        slots=json.loads(data.get("slots") or "[]"),
    )


def _meta_fields(meta: MeetingMeta, schedule: Schedule) -> dict[str, str]:
    fields = {
        "title": meta.title,
        "admin_token": meta.adminToken,
        "created_at": str(meta.createdAt),
        "expires_at": str(meta.expiresAt),
        "status": meta.status,
        "allow_guest": "1" if meta.allowGuest else "0",
        "schedule": schedule.model_dump_json(),
    }
    if meta.description:
        fields["description"] = meta.description
    return fields


def _meta_from_hash(data: dict[str, str]) -> MeetingMeta:
    return MeetingMeta(
        title=data["title"],
        description=data.get("description"),
        adminToken=data["admin_token"],
        createdAt=int(data["created_at"]),
        expiresAt=int(data["expires_at"]),
        status=data.get("status", "active"),
        allowGuest=data.get("allow_guest") == "1",
        finalizedSlotId=data.get("finalized_slot_id"),
    )


def _find_guest_request(
    raw_requests: list[str], request_id: str
) -> Optional[tuple[str, GuestRequest]]:
    for raw in raw_requests:
        request = GuestRequest.model_validate_json(raw)
        if request.tempId == request_id:
            return raw, request
    return None


class MeetingRepository:
    """Repository for meeting document operations"""

    def __init__(self, redis_client: redis.Redis, ttl_seconds: int = config.MEETING_TTL_SECONDS):
        self.redis = redis_client
        self.ttl_seconds = ttl_seconds

    async def _transaction(self, func: Callable[[Pipeline], Awaitable[T]], *watches: str) -> T:
        """
        Run `func` inside WATCH/MULTI on the given keys.

        `func` does its reads in immediate mode, calls pipe.multi(), queues its
        writes and returns a value; the writes are executed here. Raising inside
        `func` aborts without writing.
        """
        for attempt in range(1, MAX_WATCH_RETRIES + 1):
            async with self.redis.pipeline(transaction=True) as pipe:
                try:
                    await pipe.watch(*watches)
                    result = await func(pipe)
                    await pipe.execute()
                    return result
                except WatchError:
                    logger.debug(f"🔁 Write conflict on {watches[0]} (attempt {attempt})")
        logger.error(f"❌ Gave up after {MAX_WATCH_RETRIES} conflicting writes on {watches[0]}")
        raise UnavailableError()

    # ========================================================================
    # CREATE / READ
    # ========================================================================

    async def create(self, data: MeetingCreate) -> tuple[str, str]:
        """Persist a new meeting; returns (meeting_id, admin_token)"""
        admin_token = new_admin_token()
        created_at = _now_ms()
        expires_at = created_at + self.ttl_seconds * 1000

        meta = MeetingMeta(
            title=data.title,
            description=data.description,
            adminToken=admin_token,
            createdAt=created_at,
            expiresAt=expires_at,
            status="active",
            allowGuest=data.allowGuest,
        )
        schedule = Schedule(
            type="weekly" if len(data.dates) == 7 else "specific_dates",
            dates=data.dates,
            startHour=data.startHour,
            endHour=data.endHour,
        )
        participants = {new_participant_id(): Participant(name=name) for name in data.participantNames}

        for attempt in range(1, MAX_ID_ATTEMPTS + 1):
            meeting_id = new_meeting_id()
            key = meeting_key(meeting_id)

            async def write(pipe: Pipeline) -> None:
                if await pipe.exists(key):
                    raise WatchError(f"Meeting ID collision: {meeting_id}")
                pipe.multi()
                pipe.hset(key, mapping=_meta_fields(meta, schedule))
                pipe.pexpireat(key, expires_at)
                pipe.rpush(roster_key(meeting_id), *participants.keys())
                pipe.pexpireat(roster_key(meeting_id), expires_at)
                for participant_id, participant in participants.items():
                    pkey = participant_key(meeting_id, participant_id)
                    pipe.hset(pkey, mapping=_participant_fields(participant))
                    pipe.pexpireat(pkey, expires_at)

            try:
                async with self.redis.pipeline(transaction=True) as pipe:
                    await pipe.watch(key)
                    await write(pipe)
                    await pipe.execute()
            except WatchError:
                logger.warning(f"⚠️ Meeting ID collision, retrying (attempt {attempt})")
                continue

            logger.info(
                f"✅ Meeting {meeting_id} created with {len(participants)} participants"
            )
            return meeting_id, admin_token

        raise CreationError()

    async def get(self, meeting_id: str) -> Optional[Meeting]:
        """Load the full meeting document, secrets included"""
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.hgetall(meeting_key(meeting_id))
            pipe.lrange(roster_key(meeting_id), 0, -1)
            pipe.lrange(guests_key(meeting_id), 0, -1)
            meta_hash, participant_ids, raw_guests = await pipe.execute()

        if not meta_hash:
            return None

        participants: dict[str, Participant] = {}
        if participant_ids:
            async with self.redis.pipeline(transaction=False) as pipe:
                for participant_id in participant_ids:
                    pipe.hgetall(participant_key(meeting_id, participant_id))
                records = await pipe.execute()
            for participant_id, record in zip(participant_ids, records):
                # Deleted between the two reads
                if record:
                    participants[participant_id] = _participant_from_hash(record)

        return Meeting(
            meta=_meta_from_hash(meta_hash),
            schedule=Schedule.model_validate_json(meta_hash["schedule"]),
            participants=participants,
            guestRequests=[GuestRequest.model_validate_json(raw) for raw in raw_guests],
        )

    async def get_public(self, meeting_id: str) -> Optional[PublicMeeting]:
        meeting = await self.get(meeting_id)
        if meeting is None:
            return None
        return project_meeting(meeting)

    async def get_status(self, meeting_id: str) -> Optional[str]:
        return await self.redis.hget(meeting_key(meeting_id), "status")

    async def validate_admin_token(self, meeting_id: str, admin_token: str) -> bool:
        stored = await self.redis.hget(meeting_key(meeting_id), "admin_token")
        return constant_time_compare(stored, admin_token)

    async def validate_device_token(
        self, meeting_id: str, participant_id: str, device_token: str
    ) -> bool:
        stored = await self.redis.hget(
            participant_key(meeting_id, participant_id), "device_token"
        )
        return constant_time_compare(stored, device_token)

    # ========================================================================
    # IDENTITY
    # ========================================================================

    async def claim(self, meeting_id: str, participant_id: str, device_token: str) -> str:
        """
        Bind a device token to an unclaimed participant (compare-and-set).
        Returns the participant's name.
        """
        pkey = participant_key(meeting_id, participant_id)

        async def cas(pipe: Pipeline) -> str:
            name, current = await pipe.hmget(pkey, "name", "device_token")
            if name is None:
                raise NotFoundError("Participant not found")
            if current is not None:
                raise AlreadyClaimedError()
            pipe.multi()
            pipe.hset(pkey, "device_token", device_token)
            return name

        return await self._transaction(cas, pkey)

    async def force_claim(self, meeting_id: str, participant_id: str, device_token: str) -> str:
        """Overwrite whatever token is bound to the participant"""
        pkey = participant_key(meeting_id, participant_id)

        async def overwrite(pipe: Pipeline) -> str:
            name = await pipe.hget(pkey, "name")
            if name is None:
                raise NotFoundError("Participant not found")
            pipe.multi()
            pipe.hset(pkey, "device_token", device_token)
            return name

        return await self._transaction(overwrite, pkey)

    async def reset_session(self, meeting_id: str, participant_id: str) -> str:
        """Unbind the participant's device token"""
        pkey = participant_key(meeting_id, participant_id)

        async def clear(pipe: Pipeline) -> str:
            name = await pipe.hget(pkey, "name")
            if name is None:
                raise NotFoundError("Participant not found")
            pipe.multi()
            pipe.hdel(pkey, "device_token")
            return name

        return await self._transaction(clear, pkey)

    # ========================================================================
    # AVAILABILITY
    # ========================================================================

    async def update_availability(
        self, meeting_id: str, participant_id: str, device_token: str, slots: list[str]
    ) -> list[str]:
        """
        Replace the participant's slot set with `slots`, clipped to the grid.
        Rejected when the token does not match or the meeting is frozen/finalized.
        """
        mkey = meeting_key(meeting_id)
        pkey = participant_key(meeting_id, participant_id)

        async def replace(pipe: Pipeline) -> list[str]:
            status, raw_schedule = await pipe.hmget(mkey, "status", "schedule")
            stored_token = await pipe.hget(pkey, "device_token")
            if status is None or not constant_time_compare(stored_token, device_token):
                raise UnauthorizedError()
            if status in ("frozen", "finalized"):
                raise MeetingFrozenError()

            schedule = Schedule.model_validate_json(raw_schedule)
            clipped = clip_slots(slots, schedule.date_count, schedule.startHour, schedule.endHour)
            if len(clipped) != len(slots):
                logger.debug(
                    f"Clipped {len(slots) - len(clipped)} slots for participant in meeting {meeting_id}"
                )
            pipe.multi()
            pipe.hset(pkey, "slots", json.dumps(clipped))
            return clipped

        return await self._transaction(replace, mkey, pkey)

    # ========================================================================
    # ADMIN
    # ========================================================================

    async def set_status(self, meeting_id: str, status: str) -> None:
        """Toggle between active and frozen; finalized is terminal"""
        mkey = meeting_key(meeting_id)

        async def toggle(pipe: Pipeline) -> None:
            current = await pipe.hget(mkey, "status")
            if current is None:
                raise NotFoundError("Meeting not found")
            if current == "finalized":
                raise AlreadyFinalizedError()
            pipe.multi()
            pipe.hset(mkey, "status", status)

        await self._transaction(toggle, mkey)

    async def delete_participant(self, meeting_id: str, participant_id: str) -> str:
        """Remove a participant record and its roster entry; returns the name"""
        pkey = participant_key(meeting_id, participant_id)

        async def delete(pipe: Pipeline) -> str:
            name = await pipe.hget(pkey, "name")
            if name is None:
                raise NotFoundError("Participant not found")
            pipe.multi()
            pipe.delete(pkey)
            pipe.lrem(roster_key(meeting_id), 0, participant_id)
            return name

        return await self._transaction(delete, pkey)

    async def finalize(self, meeting_id: str, slot_id: str) -> str:
        """
        Commit the chosen slot and return it normalized. Status and slot ID go out
        in one HSET, so nobody can observe a finalized meeting without its slot.
        """
        mkey = meeting_key(meeting_id)

        async def commit(pipe: Pipeline) -> str:
            status, raw_schedule = await pipe.hmget(mkey, "status", "schedule")
            if status is None:
                raise NotFoundError("Meeting not found")
            if status == "finalized":
                raise AlreadyFinalizedError()
            schedule = Schedule.model_validate_json(raw_schedule)
            if not slot_in_grid(slot_id, schedule.date_count, schedule.startHour, schedule.endHour):
                raise InvalidInputError("Selected slot is not part of this meeting")
            chosen = encode_slot(*decode_slot(slot_id))
            pipe.multi()
            pipe.hset(mkey, mapping={"finalized_slot_id": chosen, "status": "finalized"})
            return chosen

        chosen = await self._transaction(commit, mkey)
        logger.info(f"🏁 Meeting {meeting_id} finalized at {chosen}")
        return chosen

    # ========================================================================
    # GUESTS
    # ========================================================================

    async def add_guest_request(self, meeting_id: str, request: GuestRequest) -> None:
        mkey = meeting_key(meeting_id)
        gkey = guests_key(meeting_id)

        async def append(pipe: Pipeline) -> None:
            status, allow_guest, expires_at = await pipe.hmget(
                mkey, "status", "allow_guest", "expires_at"
            )
            if status is None:
                raise NotFoundError("Meeting not found")
            if allow_guest != "1":
                raise GuestsNotAllowedError()
            if status == "finalized":
                raise AlreadyFinalizedError()
            pipe.multi()
            pipe.rpush(gkey, request.model_dump_json())
            pipe.pexpireat(gkey, int(expires_at))

        await self._transaction(append, mkey)

    async def pop_guest_request(self, meeting_id: str, request_id: str) -> GuestRequest:
        """Remove a pending request and return it"""
        gkey = guests_key(meeting_id)

        async def remove(pipe: Pipeline) -> GuestRequest:
            found = _find_guest_request(await pipe.lrange(gkey, 0, -1), request_id)
            if found is None:
                raise NotFoundError("Guest request not found")
            raw, request = found
            pipe.multi()
            pipe.lrem(gkey, 1, raw)
            return request

        return await self._transaction(remove, gkey)

    async def approve_guest_request(
        self, meeting_id: str, request_id: str
    ) -> tuple[str, GuestRequest]:
        """
        Promote a pending request into an approved, unclaimed participant.
        Returns (participant_id, request).
        """
        mkey = meeting_key(meeting_id)
        gkey = guests_key(meeting_id)
        participant_id = new_participant_id()
        pkey = participant_key(meeting_id, participant_id)

        async def promote(pipe: Pipeline) -> GuestRequest:
            expires_at = await pipe.hget(mkey, "expires_at")
            if expires_at is None:
                raise NotFoundError("Meeting not found")
            found = _find_guest_request(await pipe.lrange(gkey, 0, -1), request_id)
            if found is None:
                raise NotFoundError("Guest request not found")
            raw, request = found
            pipe.multi()
            pipe.lrem(gkey, 1, raw)
            pipe.hset(pkey, mapping=_participant_fields(Participant(name=request.name)))
            pipe.pexpireat(pkey, int(expires_at))
            pipe.rpush(roster_key(meeting_id), participant_id)
            pipe.pexpireat(roster_key(meeting_id), int(expires_at))
            return request

        request = await self._transaction(promote, mkey, gkey)
        return participant_id, request
