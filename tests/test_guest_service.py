ORIGIN = "203.0.113.7"


async def test_guest_round_trip(guest_service, service, bus, make_meeting):
    meeting_id, admin_token, participant_ids = await make_meeting()

    requested = await guest_service.request_guest_access(meeting_id, "  Deniz  ", ORIGIN)
    assert requested.success
    request_id = requested.data["requestId"]

    pending = (await service.get_meeting(meeting_id)).data.guestRequests
    assert [(g.tempId, g.name) for g in pending] == [(request_id, "Deniz")]

    approved = await guest_service.approve_guest(meeting_id, request_id, admin_token)
    assert approved.success
    participant_id = approved.data.participantId

    meeting = (await service.get_meeting(meeting_id)).data
    assert meeting.guestRequests == []
    assert list(meeting.participants) == participant_ids + [participant_id]
    assert meeting.participants[participant_id].isClaimed is False

    assert bus.types() == ["GUEST_REQUEST", "GUEST_APPROVED"]
    assert bus.events[1].userId == participant_id
    assert bus.events[1].requestId == request_id

    # The new participant goes through the normal claim flow
    assert (await service.claim_identity(meeting_id, participant_id)).success

    again = await guest_service.approve_guest(meeting_id, request_id, admin_token)
    assert again.code == "not_found"


async def test_reject_guest(guest_service, service, bus, make_meeting):
    meeting_id, admin_token, participant_ids = await make_meeting()
    request_id = (
        await guest_service.request_guest_access(meeting_id, "Deniz", ORIGIN)
    ).data["requestId"]

    assert (await guest_service.reject_guest(meeting_id, request_id, admin_token)).success
    meeting = (await service.get_meeting(meeting_id)).data
    assert meeting.guestRequests == []
    assert list(meeting.participants) == participant_ids
    assert bus.types() == ["GUEST_REQUEST", "GUEST_REJECTED"]

    assert (await guest_service.reject_guest(meeting_id, request_id, admin_token)).code == "not_found"


async def test_guest_admin_actions_require_token(guest_service, make_meeting):
    meeting_id, _, _ = await make_meeting()
    request_id = (
        await guest_service.request_guest_access(meeting_id, "Deniz", ORIGIN)
    ).data["requestId"]
    assert (await guest_service.approve_guest(meeting_id, request_id, "0" * 64)).code == "unauthorized"
    assert (await guest_service.reject_guest(meeting_id, request_id, None)).code == "unauthorized"


async def test_guests_not_allowed(guest_service, bus, make_meeting):
    meeting_id, _, _ = await make_meeting(allowGuest=False)
    result = await guest_service.request_guest_access(meeting_id, "Deniz", ORIGIN)
    assert result.code == "guests_not_allowed"
    assert bus.events == []


async def test_invalid_guest_name(guest_service, make_meeting):
    meeting_id, _, _ = await make_meeting()
    assert (await guest_service.request_guest_access(meeting_id, "   ", ORIGIN)).code == "invalid_input"
    assert (await guest_service.request_guest_access(meeting_id, "x" * 51, ORIGIN)).code == "invalid_input"


async def test_unknown_meeting(guest_service):
    result = await guest_service.request_guest_access("zzzzzzzzzz", "Deniz", ORIGIN)
    assert result.code == "not_found"


async def test_fourth_request_in_window_is_rate_limited(guest_service, service, make_meeting):
    meeting_id, _, _ = await make_meeting()
    for i in range(3):
        assert (await guest_service.request_guest_access(meeting_id, f"Guest {i}", ORIGIN)).success

    limited = await guest_service.request_guest_access(meeting_id, "Guest 3", ORIGIN)
    assert limited.code == "rate_limited"
    assert 0 < limited.retryAfter <= 60
    assert len((await service.get_meeting(meeting_id)).data.guestRequests) == 3

    # Another origin has its own window
    assert (await guest_service.request_guest_access(meeting_id, "Other", "198.51.100.1")).success


async def test_fingerprint_not_exposed(guest_service, service, repo, make_meeting):
    meeting_id, _, _ = await make_meeting()
    await guest_service.request_guest_access(meeting_id, "Deniz", ORIGIN)

    stored = (await repo.get(meeting_id)).guestRequests[0]
    assert ORIGIN not in stored.fingerprint
    public = (await service.get_meeting(meeting_id)).data.model_dump_json()
    assert stored.fingerprint not in public
    assert ORIGIN not in public
