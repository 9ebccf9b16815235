"""
Slot identifiers

A slot is one (day index, hour) cell of a meeting's availability grid.
Wire format: "d<dayIndex>_h<hour>", e.g. "d0_h18" = first date, 18:00
"""

import re
from typing import Any, Iterable, NamedTuple, Optional

SLOT_PATTERN = re.compile(r"^d([0-9]{1,3})_h([0-9]{1,2})$")
HOURS_PER_DAY = 24


class SlotRef(NamedTuple):
    day_index: int
    hour: int


def encode_slot(day_index: int, hour: int) -> str:
    if day_index < 0 or not 0 <= hour < HOURS_PER_DAY:
        raise ValueError(f"Slot out of range: day={day_index} hour={hour}")
    return f"d{day_index}_h{hour}"


def decode_slot(slot_id: Any) -> Optional[SlotRef]:
    """Parse a slot ID; returns None for anything encode_slot could not have produced"""
    if not isinstance(slot_id, str):
        return None
    match = SLOT_PATTERN.fullmatch(slot_id)
    if not match:
        return None
    day_index, hour = int(match.group(1)), int(match.group(2))
    if hour >= HOURS_PER_DAY:
        return None
    return SlotRef(day_index, hour)


def enumerate_slots(date_count: int, start_hour: int, end_hour: int) -> list[str]:
    """All slots of a grid, day-major then hour"""
    return [
        encode_slot(day_index, hour)
        for day_index in range(date_count)
        for hour in range(start_hour, end_hour)
    ]


def slot_in_grid(slot_id: Any, date_count: int, start_hour: int, end_hour: int) -> bool:
    ref = decode_slot(slot_id)
    if ref is None:
        return False
    return ref.day_index < date_count and start_hour <= ref.hour < end_hour


def clip_slots(
    slot_ids: Iterable[Any], date_count: int, start_hour: int, end_hour: int
) -> list[str]:
    """
    Keep only slots inside the grid, normalized and de-duplicated.
    First occurrence order is preserved.
    """
    seen: set[str] = set()
    clipped = []
    for slot_id in slot_ids:
        if not slot_in_grid(slot_id, date_count, start_hour, end_hour):
            continue
        normalized = encode_slot(*decode_slot(slot_id))
        if normalized not in seen:
            seen.add(normalized)
            clipped.append(normalized)
    return clipped
