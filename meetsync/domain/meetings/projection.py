"""Public view of a meeting: everything a viewer may see, nothing secret"""

from .schemas import (
    Meeting,
    PublicGuestRequest,
    PublicMeeting,
    PublicMeta,
    PublicParticipant,
)


def project_meeting(meeting: Meeting) -> PublicMeeting:
    """
    Strip the admin token, device tokens and guest fingerprints.
    Device tokens are replaced by an isClaimed flag.
    """
    meta = meeting.meta
    return PublicMeeting(
        meta=PublicMeta(
            title=meta.title,
            description=meta.description,
            createdAt=meta.createdAt,
            expiresAt=meta.expiresAt,
            status=meta.status,
            allowGuest=meta.allowGuest,
            finalizedSlotId=meta.finalizedSlotId,
        ),
        schedule=meeting.schedule.model_copy(deep=True),
        participants={
            participant_id: PublicParticipant(
                name=participant.name,
                status=participant.status,
                slots=list(participant.slots),
                isClaimed=participant.deviceToken is not None,
            )
            for participant_id, participant in meeting.participants.items()
        },
        guestRequests=[
            PublicGuestRequest(tempId=request.tempId, name=request.name)
            for request in meeting.guestRequests
        ],
    )
