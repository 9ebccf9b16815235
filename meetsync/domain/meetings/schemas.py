"""Meeting domain schemas - Pydantic models for the document and the action surface"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ... import config
from ...shared.validators import clean_display_name, validate_iso_date

MeetingStatus = Literal["active", "frozen", "finalized"]
ParticipantStatus = Literal["approved", "pending"]
ScheduleType = Literal["weekly", "specific_dates"]

MAX_TITLE_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500
MAX_NAME_LENGTH = 50
MAX_DATES = 31
MAX_PARTICIPANTS = 50


# ============================================================================
# STORED DOCUMENT
# ============================================================================


class MeetingMeta(BaseModel):
    title: str
    description: Optional[str] = None
    adminToken: str
    createdAt: int
    expiresAt: int
    status: MeetingStatus = "active"
    allowGuest: bool = False
    finalizedSlotId: Optional[str] = None


class Schedule(BaseModel):
    type: ScheduleType
    dates: list[str]
    startHour: int
    endHour: int

    @property
    def date_count(self) -> int:
        return len(self.dates)


class Participant(BaseModel):
    name: str
    status: ParticipantStatus = "approved"
    deviceToken: Optional[str] = None
    slots: list[str] = Field(default_factory=list)


class GuestRequest(BaseModel):
    tempId: str
    name: str
    fingerprint: str
    timestamp: int


class Meeting(BaseModel):
    meta: MeetingMeta
    schedule: Schedule
    participants: dict[str, Participant] = Field(default_factory=dict)
    guestRequests: list[GuestRequest] = Field(default_factory=list)


# ============================================================================
# PUBLIC PROJECTION
# ============================================================================


class PublicMeta(BaseModel):
    title: str
    description: Optional[str] = None
    createdAt: int
    expiresAt: int
    status: MeetingStatus
    allowGuest: bool
    finalizedSlotId: Optional[str] = None


class PublicParticipant(BaseModel):
    name: str
    status: ParticipantStatus
    slots: list[str]
    isClaimed: bool


class PublicGuestRequest(BaseModel):
    tempId: str
    name: str


class PublicMeeting(BaseModel):
    meta: PublicMeta
    schedule: Schedule
    participants: dict[str, PublicParticipant]
    guestRequests: list[PublicGuestRequest]


# ============================================================================
# REQUESTS
# ============================================================================


class MeetingCreate(BaseModel):
    """Schema for creating a new meeting"""

    title: str
    description: Optional[str] = None
    dates: list[str]
    participantNames: list[str]
    allowGuest: bool = False
    startHour: Optional[int] = None
    endHour: Optional[int] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        v = (v or "").strip()
        if not v:
            raise ValueError("Title is required")
        if len(v) > MAX_TITLE_LENGTH:
            raise ValueError(f"Title must be at most {MAX_TITLE_LENGTH} characters")
        return v

    @field_validator("description")
    @classmethod
    def validate_description(cls, v):
        if v is None:
            return v
        v = v.strip()
        if len(v) > MAX_DESCRIPTION_LENGTH:
            raise ValueError(f"Description must be at most {MAX_DESCRIPTION_LENGTH} characters")
        return v or None

    @field_validator("dates")
    @classmethod
    def validate_dates(cls, v):
        if not v:
            raise ValueError("At least one date must be selected")
        if len(v) > MAX_DATES:
            raise ValueError(f"At most {MAX_DATES} dates can be selected")
        dates = [validate_iso_date(d) for d in v]
        if len(set(dates)) != len(dates):
            raise ValueError("Dates must be unique")
        return dates

    @field_validator("participantNames")
    @classmethod
    def validate_participant_names(cls, v):
        names = [n for n in ((n or "").strip() for n in v) if n]
        if not names:
            raise ValueError("At least one participant must be added")
        if len(names) > MAX_PARTICIPANTS:
            raise ValueError(f"At most {MAX_PARTICIPANTS} participants can be added")
        return [clean_display_name(n, MAX_NAME_LENGTH) for n in names]

    @model_validator(mode="after")
    def validate_hours(self):
        start = config.DEFAULT_START_HOUR if self.startHour is None else self.startHour
        end = config.DEFAULT_END_HOUR if self.endHour is None else self.endHour
        if not (0 <= start < end <= 24):
            raise ValueError("Hours must satisfy 0 <= startHour < endHour <= 24")
        self.startHour = start
        self.endHour = end
        return self


class AvailabilityUpdate(BaseModel):
    slots: list[str] = Field(default_factory=list, max_length=MAX_DATES * 24)


class GuestAccessCreate(BaseModel):
    name: str

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        return clean_display_name(v, MAX_NAME_LENGTH)


class FreezeRequest(BaseModel):
    freeze: bool


class FinalizeRequest(BaseModel):
    slotId: str


# ============================================================================
# RESPONSES
# ============================================================================


class CreateMeetingResponse(BaseModel):
    meetingId: str
    adminToken: str
    shareUrl: str


class ClaimResponse(BaseModel):
    deviceToken: str


class GuestApproval(BaseModel):
    participantId: str


class SlotScore(BaseModel):
    slotId: str
    dayIndex: int
    hour: int
    count: int
    attendees: list[str]
    ratio: float


class BestSlots(BaseModel):
    totalParticipants: int
    perfect: list[SlotScore] = Field(default_factory=list)
    best: list[SlotScore] = Field(default_factory=list)
    ranked: list[SlotScore] = Field(default_factory=list)


class ActionResult(BaseModel):
    """Discriminated success/error value returned by every action"""

    success: bool
    data: Any = None
    error: Optional[str] = None
    code: Optional[str] = None
    retryAfter: Optional[int] = None

    @classmethod
    def ok(cls, data: Any = None) -> "ActionResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, code: str, error: str, retry_after: Optional[int] = None) -> "ActionResult":
        return cls(success=False, code=code, error=error, retryAfter=retry_after)
