"""Meeting router - FastAPI endpoints for the meeting action surface"""

import logging
from typing import Optional

import redis.asyncio as redis
from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request

from ...rate_limiter import get_client_ip
from ...realtime.bus import EventBus
from .guest_service import GuestService
from .matching import SUGGESTION_LIMIT
from .repository import MeetingRepository
from .schemas import (
    ActionResult,
    AvailabilityUpdate,
    FinalizeRequest,
    FreezeRequest,
    GuestAccessCreate,
    MeetingCreate,
)
from .service import MeetingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/meetings", tags=["Meetings"])

STATUS_BY_CODE = {
    "not_found": 404,
    "unauthorized": 401,
    "already_claimed": 409,
    "meeting_frozen": 409,
    "already_finalized": 409,
    "guests_not_allowed": 403,
    "rate_limited": 429,
    "invalid_input": 422,
    "unavailable": 503,
    "creation_failed": 500,
}


def get_redis(request: Request) -> redis.Redis:
    return request.app.state.redis


def get_meeting_service(client: redis.Redis = Depends(get_redis)) -> MeetingService:
    """Dependency injection for MeetingService"""
    return MeetingService(MeetingRepository(client), EventBus(client))


def get_guest_service(client: redis.Redis = Depends(get_redis)) -> GuestService:
    """Dependency injection for GuestService"""
    return GuestService(MeetingRepository(client), EventBus(client), client)


def unwrap(result: ActionResult) -> ActionResult:
    """Raise the HTTP error matching a failed action, pass successes through"""
    if result.success:
        return result
    headers = None
    if result.retryAfter is not None:
        headers = {"Retry-After": str(result.retryAfter)}
    raise HTTPException(
        status_code=STATUS_BY_CODE.get(result.code, 500),
        detail={"code": result.code, "message": result.error},
        headers=headers,
    )


# ============================================================================
# PUBLIC ENDPOINTS
# ============================================================================


@router.post("", status_code=201)
async def create_meeting(
    data: MeetingCreate,
    service: MeetingService = Depends(get_meeting_service),
):
    """Create a meeting; the admin token is only ever returned here"""
    return unwrap(await service.create_meeting(data))


@router.get("/{meeting_id}")
async def get_meeting(
    meeting_id: str,
    service: MeetingService = Depends(get_meeting_service),
):
    return unwrap(await service.get_meeting(meeting_id))


@router.get("/{meeting_id}/best-slots")
async def get_best_slots(
    meeting_id: str,
    limit: Optional[int] = Query(SUGGESTION_LIMIT, ge=1, le=24 * 31),
    service: MeetingService = Depends(get_meeting_service),
):
    """Ranked suggestions for finalizing"""
    return unwrap(await service.get_best_slots(meeting_id, limit=limit))


@router.post("/{meeting_id}/participants/{participant_id}/claim")
async def claim_identity(
    meeting_id: str,
    participant_id: str,
    force: bool = Query(False),
    service: MeetingService = Depends(get_meeting_service),
):
    """Bind this browser to a participant; `force` takes over an existing claim"""
    if force:
        return unwrap(await service.force_claim_identity(meeting_id, participant_id))
    return unwrap(await service.claim_identity(meeting_id, participant_id))


@router.post("/{meeting_id}/participants/{participant_id}/session")
async def validate_session(
    meeting_id: str,
    participant_id: str,
    x_device_token: Optional[str] = Header(None),
    service: MeetingService = Depends(get_meeting_service),
):
    valid = await service.validate_session(meeting_id, participant_id, x_device_token)
    return {"valid": valid}


@router.put("/{meeting_id}/participants/{participant_id}/slots")
async def update_availability(
    meeting_id: str,
    participant_id: str,
    data: AvailabilityUpdate,
    x_device_token: Optional[str] = Header(None),
    service: MeetingService = Depends(get_meeting_service),
):
    """Replace the participant's full slot selection"""
    return unwrap(
        await service.update_availability(meeting_id, participant_id, x_device_token, data.slots)
    )


@router.post("/{meeting_id}/guest-requests", status_code=202)
async def request_guest_access(
    meeting_id: str,
    data: GuestAccessCreate,
    request: Request,
    service: GuestService = Depends(get_guest_service),
):
    return unwrap(await service.request_guest_access(meeting_id, data.name, get_client_ip(request)))


# ============================================================================
# ADMIN ENDPOINTS
# ============================================================================


@router.post("/{meeting_id}/admin/validate")
async def validate_admin(
    meeting_id: str,
    x_admin_token: Optional[str] = Header(None),
    service: MeetingService = Depends(get_meeting_service),
):
    return {"valid": await service.validate_admin(meeting_id, x_admin_token)}


@router.post("/{meeting_id}/guest-requests/{request_id}/approve")
async def approve_guest(
    meeting_id: str,
    request_id: str,
    x_admin_token: Optional[str] = Header(None),
    service: GuestService = Depends(get_guest_service),
):
    return unwrap(await service.approve_guest(meeting_id, request_id, x_admin_token))


@router.post("/{meeting_id}/guest-requests/{request_id}/reject")
async def reject_guest(
    meeting_id: str,
    request_id: str,
    x_admin_token: Optional[str] = Header(None),
    service: GuestService = Depends(get_guest_service),
):
    return unwrap(await service.reject_guest(meeting_id, request_id, x_admin_token))


@router.post("/{meeting_id}/freeze")
async def toggle_freeze(
    meeting_id: str,
    data: FreezeRequest,
    x_admin_token: Optional[str] = Header(None),
    service: MeetingService = Depends(get_meeting_service),
):
    return unwrap(await service.toggle_freeze(meeting_id, x_admin_token, data.freeze))


@router.post("/{meeting_id}/participants/{participant_id}/reset")
async def reset_session(
    meeting_id: str,
    participant_id: str,
    x_admin_token: Optional[str] = Header(None),
    service: MeetingService = Depends(get_meeting_service),
):
    return unwrap(await service.reset_session(meeting_id, participant_id, x_admin_token))


@router.delete("/{meeting_id}/participants/{participant_id}")
async def delete_participant(
    meeting_id: str,
    participant_id: str,
    x_admin_token: Optional[str] = Header(None),
    service: MeetingService = Depends(get_meeting_service),
):
    return unwrap(await service.delete_participant(meeting_id, participant_id, x_admin_token))


@router.post("/{meeting_id}/finalize")
async def finalize_meeting(
    meeting_id: str,
    data: FinalizeRequest,
    x_admin_token: Optional[str] = Header(None),
    service: MeetingService = Depends(get_meeting_service),
):
    return unwrap(await service.finalize_meeting(meeting_id, data.slotId, x_admin_token))
