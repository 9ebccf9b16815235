from meetsync.domain.meetings.matching import compute_best_slots
from meetsync.domain.meetings.schemas import Meeting, MeetingMeta, Participant, Schedule


def build_meeting(selections, dates=("2026-11-02",), start=9, end=11, pending=()):
    participants = {
        f"p{i}": Participant(name=name, slots=list(slots))
        for i, (name, slots) in enumerate(selections.items())
    }
    for name in pending:
        participants[f"pending-{name}"] = Participant(
            name=name, status="pending", slots=["d0_h10"]
        )
    return Meeting(
        meta=MeetingMeta(title="t", adminToken="x", createdAt=0, expiresAt=1),
        schedule=Schedule(type="specific_dates", dates=list(dates), startHour=start, endHour=end),
        participants=participants,
    )


def slot_ids(scores):
    return [s.slotId for s in scores]


def test_unanimous_slot_is_perfect():
    meeting = build_meeting({"A": ["d0_h9"], "B": ["d0_h9", "d0_h10"], "C": ["d0_h9"]})
    result = compute_best_slots(meeting)
    assert result.totalParticipants == 3
    assert slot_ids(result.perfect) == ["d0_h9"]
    assert result.perfect[0].count == 3
    assert result.perfect[0].ratio == 1
    assert result.best == []
    assert "d0_h10" not in slot_ids(result.perfect) + slot_ids(result.best)
    assert slot_ids(result.ranked) == ["d0_h9", "d0_h10"]


def test_best_is_tie_at_max_ordered_by_day_then_hour():
    meeting = build_meeting(
        {"A": ["d1_h9", "d0_h10"], "B": ["d1_h9", "d0_h10"], "C": ["d0_h9"]},
        dates=("2026-11-02", "2026-11-03"),
    )
    result = compute_best_slots(meeting)
    assert result.perfect == []
    assert slot_ids(result.best) == ["d0_h10", "d1_h9"]
    assert all(s.count == 2 for s in result.best)
    assert result.best[0].attendees == ["A", "B"]


def test_pending_participants_are_ignored():
    meeting = build_meeting({"A": ["d0_h9"]}, pending=["Z"])
    result = compute_best_slots(meeting)
    assert result.totalParticipants == 1
    assert slot_ids(result.perfect) == ["d0_h9"]
    assert "d0_h10" not in slot_ids(result.ranked)


def test_slots_outside_grid_are_not_counted():
    meeting = build_meeting({"A": ["d0_h9", "d3_h9", "d0_h20"]})
    assert slot_ids(compute_best_slots(meeting).ranked) == ["d0_h9"]


def test_empty_inputs_yield_empty_results():
    assert compute_best_slots(build_meeting({})).ranked == []
    nobody_voted = compute_best_slots(build_meeting({"A": [], "B": []}))
    assert nobody_voted.perfect == [] and nobody_voted.best == [] and nobody_voted.ranked == []
    no_dates = compute_best_slots(build_meeting({"A": ["d0_h9"]}, dates=()))
    assert no_dates.ranked == []


def test_limit_truncates_ranked_only():
    meeting = build_meeting({"A": ["d0_h9", "d0_h10"]}, start=9, end=11)
    result = compute_best_slots(meeting, limit=1)
    assert slot_ids(result.ranked) == ["d0_h9"]
    assert slot_ids(result.perfect) == ["d0_h9", "d0_h10"]
