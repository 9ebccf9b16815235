"""Real-time event envelope shared by the publishers and the relay"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel


class EventType(str, Enum):
    SLOTS_UPDATED = "SLOTS_UPDATED"
    PARTICIPANT_JOINED = "PARTICIPANT_JOINED"
    PARTICIPANT_REMOVED = "PARTICIPANT_REMOVED"
    GUEST_REQUEST = "GUEST_REQUEST"
    GUEST_APPROVED = "GUEST_APPROVED"
    GUEST_REJECTED = "GUEST_REJECTED"
    MEETING_FROZEN = "MEETING_FROZEN"
    MEETING_UNFROZEN = "MEETING_UNFROZEN"
    SESSION_RESET = "SESSION_RESET"
    MEETING_FINALIZED = "MEETING_FINALIZED"


class MeetingEvent(BaseModel):
    """
    A "something changed, re-read" signal for one meeting.

    Clients must not treat it as a complete delta; the store stays authoritative.
    """

    type: EventType
    meetingId: str
    userId: Optional[str] = None
    name: Optional[str] = None
    slots: Optional[list[str]] = None
    requestId: Optional[str] = None

    def to_wire(self) -> str:
        return self.model_dump_json(exclude_none=True)

    def room_payload(self) -> dict[str, Any]:
        """Envelope minus meetingId, which is implicit in the room"""
        return self.model_dump(mode="json", exclude_none=True, exclude={"meetingId"})
