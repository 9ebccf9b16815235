"""Meeting service - Business logic behind every meeting action"""

import logging
from functools import wraps
from typing import Optional

from redis.exceptions import RedisError

from ... import config
from ...errors import (
    MeetingError,
    NotFoundError,
    RateLimitedError,
    UnauthorizedError,
    UnavailableError,
)
from ...realtime.bus import EventBus
from ...realtime.events import EventType, MeetingEvent
from ...shared.validators import (
    is_valid_admin_token,
    is_valid_device_token,
    is_valid_meeting_id,
    is_valid_participant_id,
)
from ...tokens import new_device_token
from .matching import SUGGESTION_LIMIT, compute_best_slots
from .repository import MeetingRepository
from .schemas import ActionResult, ClaimResponse, CreateMeetingResponse, MeetingCreate

logger = logging.getLogger(__name__)


def action_boundary(name: str):
    """
    Turn an action coroutine's exceptions into ActionResult failures.
    Storage errors become `unavailable`; details stay in the logs.
    """

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs) -> ActionResult:
            try:
                return await func(*args, **kwargs)
            except RateLimitedError as e:
                return ActionResult.fail(e.code, e.message, retry_after=e.retry_after)
            except MeetingError as e:
                logger.info(f"⚠️ {name} rejected: {e.code}")
                return ActionResult.fail(e.code, e.message)
            except (RedisError, OSError) as e:
                logger.error(f"❌ {name} storage error: {str(e)}")
                error = UnavailableError()
                return ActionResult.fail(error.code, error.message)
            except Exception as e:
                logger.exception(f"❌ {name} error: {str(e)}")
                return ActionResult.fail("error", "Something went wrong")

        return wrapper

    return decorator


class MeetingService:
    """Service layer for meeting, identity, availability and admin actions"""

    def __init__(self, repo: MeetingRepository, bus: EventBus):
        self.repo = repo
        self.bus = bus

    async def _publish(self, event_type: EventType, meeting_id: str, **fields) -> None:
        await self.bus.publish(MeetingEvent(type=event_type, meetingId=meeting_id, **fields))

    async def require_admin(self, meeting_id: str, admin_token: Optional[str]) -> None:
        """Raise UnauthorizedError unless admin_token belongs to the meeting"""
        if not (is_valid_meeting_id(meeting_id) and is_valid_admin_token(admin_token)):
            raise UnauthorizedError()
        if not await self.repo.validate_admin_token(meeting_id, admin_token):
            logger.warning(f"🔒 Invalid admin token for meeting {meeting_id}")
            raise UnauthorizedError()

    @staticmethod
    def _require_participant_ids(meeting_id: str, participant_id: str) -> None:
        if not (is_valid_meeting_id(meeting_id) and is_valid_participant_id(participant_id)):
            raise NotFoundError("Participant not found")

    # ========================================================================
    # PUBLIC ACTIONS
    # ========================================================================

    @action_boundary("create_meeting")
    async def create_meeting(self, data: MeetingCreate) -> ActionResult:
        logger.info(f"📥 Creating meeting with {len(data.participantNames)} participants")
        meeting_id, admin_token = await self.repo.create(data)
        return ActionResult.ok(
            CreateMeetingResponse(
                meetingId=meeting_id,
                adminToken=admin_token,
                shareUrl=f"{config.APP_URL}/m/{meeting_id}",
            )
        )

    @action_boundary("get_meeting")
    async def get_meeting(self, meeting_id: str) -> ActionResult:
        if not is_valid_meeting_id(meeting_id):
            raise NotFoundError("Meeting not found")
        meeting = await self.repo.get_public(meeting_id)
        if meeting is None:
            raise NotFoundError("Meeting not found")
        return ActionResult.ok(meeting)

    @action_boundary("get_best_slots")
    async def get_best_slots(
        self, meeting_id: str, limit: Optional[int] = SUGGESTION_LIMIT
    ) -> ActionResult:
        if not is_valid_meeting_id(meeting_id):
            raise NotFoundError("Meeting not found")
        meeting = await self.repo.get_public(meeting_id)
        if meeting is None:
            raise NotFoundError("Meeting not found")
        return ActionResult.ok(compute_best_slots(meeting, limit=limit))

    @action_boundary("claim_identity")
    async def claim_identity(self, meeting_id: str, participant_id: str) -> ActionResult:
        self._require_participant_ids(meeting_id, participant_id)
        device_token = new_device_token()
        name = await self.repo.claim(meeting_id, participant_id, device_token)
        logger.info(f"✅ Participant claimed in meeting {meeting_id}")
        await self._publish(
            EventType.PARTICIPANT_JOINED, meeting_id, userId=participant_id, name=name
        )
        return ActionResult.ok(ClaimResponse(deviceToken=device_token))

    @action_boundary("force_claim_identity")
    async def force_claim_identity(self, meeting_id: str, participant_id: str) -> ActionResult:
        # Anyone who knows the participant ID can take over the identity.
        # Accepted trade-off of the account-less model; admins can reset sessions.
        self._require_participant_ids(meeting_id, participant_id)
        device_token = new_device_token()
        name = await self.repo.force_claim(meeting_id, participant_id, device_token)
        logger.info(f"🔄 Participant force-claimed in meeting {meeting_id}")
        await self._publish(
            EventType.PARTICIPANT_JOINED, meeting_id, userId=participant_id, name=name
        )
        return ActionResult.ok(ClaimResponse(deviceToken=device_token))

    async def validate_session(
        self, meeting_id: str, participant_id: str, device_token: Optional[str]
    ) -> bool:
        if not (
            is_valid_meeting_id(meeting_id)
            and is_valid_participant_id(participant_id)
            and is_valid_device_token(device_token)
        ):
            return False
        try:
            return await self.repo.validate_device_token(meeting_id, participant_id, device_token)
        except (RedisError, OSError) as e:
            logger.error(f"❌ validate_session storage error: {str(e)}")
            return False

    @action_boundary("update_availability")
    async def update_availability(
        self,
        meeting_id: str,
        participant_id: str,
        device_token: Optional[str],
        slots: list[str],
    ) -> ActionResult:
        if not (
            is_valid_meeting_id(meeting_id)
            and is_valid_participant_id(participant_id)
            and is_valid_device_token(device_token)
        ):
            raise UnauthorizedError()
        stored = await self.repo.update_availability(
            meeting_id, participant_id, device_token, slots
        )
        await self._publish(
            EventType.SLOTS_UPDATED, meeting_id, userId=participant_id, slots=stored
        )
        return ActionResult.ok({"slots": stored})

    # ========================================================================
    # ADMIN ACTIONS
    # ========================================================================

    async def validate_admin(self, meeting_id: str, admin_token: Optional[str]) -> bool:
        try:
            await self.require_admin(meeting_id, admin_token)
            return True
        except UnauthorizedError:
            return False
        except (RedisError, OSError) as e:
            logger.error(f"❌ validate_admin storage error: {str(e)}")
            return False

    @action_boundary("toggle_freeze")
    async def toggle_freeze(
        self, meeting_id: str, admin_token: Optional[str], freeze: bool
    ) -> ActionResult:
        await self.require_admin(meeting_id, admin_token)
        await self.repo.set_status(meeting_id, "frozen" if freeze else "active")
        logger.info(f"{'🔒' if freeze else '🔓'} Meeting {meeting_id} {'frozen' if freeze else 'unfrozen'}")
        await self._publish(
            EventType.MEETING_FROZEN if freeze else EventType.MEETING_UNFROZEN, meeting_id
        )
        return ActionResult.ok()

    @action_boundary("reset_session")
    async def reset_session(
        self, meeting_id: str, participant_id: str, admin_token: Optional[str]
    ) -> ActionResult:
        await self.require_admin(meeting_id, admin_token)
        if not is_valid_participant_id(participant_id):
            raise NotFoundError("Participant not found")
        await self.repo.reset_session(meeting_id, participant_id)
        await self._publish(EventType.SESSION_RESET, meeting_id, userId=participant_id)
        return ActionResult.ok()

    @action_boundary("delete_participant")
    async def delete_participant(
        self, meeting_id: str, participant_id: str, admin_token: Optional[str]
    ) -> ActionResult:
        await self.require_admin(meeting_id, admin_token)
        if not is_valid_participant_id(participant_id):
            raise NotFoundError("Participant not found")
        name = await self.repo.delete_participant(meeting_id, participant_id)
        logger.info(f"🗑️ Participant removed from meeting {meeting_id}")
        await self._publish(
            EventType.PARTICIPANT_REMOVED, meeting_id, userId=participant_id, name=name
        )
        return ActionResult.ok()

    @action_boundary("finalize_meeting")
    async def finalize_meeting(
        self, meeting_id: str, slot_id: str, admin_token: Optional[str]
    ) -> ActionResult:
        await self.require_admin(meeting_id, admin_token)
        chosen = await self.repo.finalize(meeting_id, slot_id)
        await self._publish(EventType.MEETING_FINALIZED, meeting_id, slots=[chosen])
        return ActionResult.ok({"finalizedSlotId": chosen})
