"""Best-match computation over a meeting's availability grid"""

from typing import Optional, Union

from ...shared.slots import encode_slot
from .schemas import BestSlots, Meeting, PublicMeeting, SlotScore

# Number of suggestions shown when finalizing
SUGGESTION_LIMIT = 5


def compute_best_slots(
    meeting: Union[Meeting, PublicMeeting], limit: Optional[int] = None
) -> BestSlots:
    """
    Score every grid slot by how many approved participants selected it.

    perfect: slots every approved participant selected
    best:    when nothing is perfect, the slots tied at the highest count
    ranked:  all slots with at least one vote, by count desc then earliest
             day and hour, truncated to `limit` when given
    """
    approved = [p for p in meeting.participants.values() if p.status == "approved"]
    total = len(approved)
    schedule = meeting.schedule
    if total == 0 or not schedule.dates or schedule.startHour >= schedule.endHour:
        return BestSlots(totalParticipants=total)

    selections = [(p.name, set(p.slots)) for p in approved]
    scores = []
    for day_index in range(len(schedule.dates)):
        for hour in range(schedule.startHour, schedule.endHour):
            slot_id = encode_slot(day_index, hour)
            attendees = [name for name, slots in selections if slot_id in slots]
            if attendees:
                scores.append(
                    SlotScore(
                        slotId=slot_id,
                        dayIndex=day_index,
                        hour=hour,
                        count=len(attendees),
                        attendees=attendees,
                        ratio=len(attendees) / total,
                    )
                )

    scores.sort(key=lambda s: (-s.count, s.dayIndex, s.hour))

    perfect = [s for s in scores if s.count == total]
    best = []
    if not perfect and scores:
        top = scores[0].count
        best = [s for s in scores if s.count == top]

    ranked = scores[:limit] if limit is not None else scores
    return BestSlots(totalParticipants=total, perfect=perfect, best=best, ranked=ranked)
