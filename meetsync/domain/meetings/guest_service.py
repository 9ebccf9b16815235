"""Guest admission - request, approve and reject access for uninvited people"""

import logging
import time
from typing import Optional

import redis.asyncio as redis

from ...errors import InvalidInputError, NotFoundError, RateLimitedError
from ...rate_limiter import check_guest_request_rate_limit, fingerprint_client
from ...realtime.bus import EventBus
from ...realtime.events import EventType, MeetingEvent
from ...shared.validators import (
    clean_display_name,
    is_valid_guest_request_id,
    is_valid_meeting_id,
)
from ...tokens import new_guest_request_id
from .repository import MeetingRepository
from .schemas import MAX_NAME_LENGTH, ActionResult, GuestApproval, GuestRequest
from .service import MeetingService, action_boundary

logger = logging.getLogger(__name__)


class GuestService:
    def __init__(self, repo: MeetingRepository, bus: EventBus, redis_client: redis.Redis):
        self.repo = repo
        self.bus = bus
        self.redis = redis_client
        self.meetings = MeetingService(repo, bus)

    @action_boundary("request_guest_access")
    async def request_guest_access(self, meeting_id: str, name: str, origin: str) -> ActionResult:
        try:
            name = clean_display_name(name, MAX_NAME_LENGTH)
        except ValueError as e:
            raise InvalidInputError(str(e)) from e
        if not is_valid_meeting_id(meeting_id):
            raise NotFoundError("Meeting not found")

        fingerprint = await fingerprint_client(self.redis, origin)
        rate_limit = await check_guest_request_rate_limit(self.redis, fingerprint)
        if not rate_limit.allowed:
            raise RateLimitedError(retry_after=rate_limit.retry_after)

        request = GuestRequest(
            tempId=new_guest_request_id(),
            name=name,
            fingerprint=fingerprint,
            timestamp=int(time.time() * 1000),
        )
        await self.repo.add_guest_request(meeting_id, request)
        logger.info(f"🙋 Guest request {request.tempId} added to meeting {meeting_id}")

        await self.bus.publish(
            MeetingEvent(
                type=EventType.GUEST_REQUEST,
                meetingId=meeting_id,
                requestId=request.tempId,
                name=request.name,
            )
        )
        return ActionResult.ok({"requestId": request.tempId})

    @action_boundary("approve_guest")
    async def approve_guest(
        self, meeting_id: str, request_id: str, admin_token: Optional[str]
    ) -> ActionResult:
        await self.meetings.require_admin(meeting_id, admin_token)
        if not is_valid_guest_request_id(request_id):
            raise NotFoundError("Guest request not found")

        participant_id, request = await self.repo.approve_guest_request(meeting_id, request_id)
        logger.info(f"✅ Guest request {request_id} approved in meeting {meeting_id}")

        await self.bus.publish(
            MeetingEvent(
                type=EventType.GUEST_APPROVED,
                meetingId=meeting_id,
                requestId=request_id,
                userId=participant_id,
                name=request.name,
            )
        )
        return ActionResult.ok(GuestApproval(participantId=participant_id))

    @action_boundary("reject_guest")
    async def reject_guest(
        self, meeting_id: str, request_id: str, admin_token: Optional[str]
    ) -> ActionResult:
        await self.meetings.require_admin(meeting_id, admin_token)
        if not is_valid_guest_request_id(request_id):
            raise NotFoundError("Guest request not found")

        await self.repo.pop_guest_request(meeting_id, request_id)
        logger.info(f"🚫 Guest request {request_id} rejected in meeting {meeting_id}")

        await self.bus.publish(
            MeetingEvent(type=EventType.GUEST_REJECTED, meetingId=meeting_id, requestId=request_id)
        )
        return ActionResult.ok()
