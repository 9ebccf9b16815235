import pytest

from meetsync.shared.slots import (
    SlotRef,
    clip_slots,
    decode_slot,
    encode_slot,
    enumerate_slots,
    slot_in_grid,
)


def test_encode_uses_wire_format():
    assert encode_slot(0, 18) == "d0_h18"
    assert encode_slot(12, 9) == "d12_h9"


def test_round_trip_over_full_grid():
    for day_index in range(7):
        for hour in range(24):
            assert decode_slot(encode_slot(day_index, hour)) == (day_index, hour)


@pytest.mark.parametrize(
    "value",
    [
        "",
        "d0",
        "h9",
        "d0_h",
        "d_h9",
        "D0_H9",
        "d-1_h9",
        "d0_h24",
        "d0_h9 ",
        "x0_h9",
        "d0h9",
        "d\u0660_h\u0669",
        "d0_h\uff19",
        "d" + "1" * 5000 + "_h9",
        "d0_h009",
        None,
        5,
        ["d0_h9"],
    ],
)
def test_decode_rejects_malformed(value):
    assert decode_slot(value) is None


def test_decode_tolerates_leading_zeros():
    assert decode_slot("d01_h09") == SlotRef(1, 9)


def test_encode_rejects_out_of_range():
    with pytest.raises(ValueError):
        encode_slot(0, 24)
    with pytest.raises(ValueError):
        encode_slot(-1, 3)


def test_enumerate_is_day_major():
    assert enumerate_slots(2, 9, 11) == ["d0_h9", "d0_h10", "d1_h9", "d1_h10"]
    assert len(enumerate_slots(3, 9, 22)) == 3 * 13
    assert enumerate_slots(0, 9, 22) == []


def test_slot_in_grid_bounds():
    assert slot_in_grid("d1_h10", 2, 9, 11)
    assert not slot_in_grid("d2_h10", 2, 9, 11)
    assert not slot_in_grid("d0_h11", 2, 9, 11)
    assert not slot_in_grid("d0_h8", 2, 9, 11)
    assert not slot_in_grid("garbage", 2, 9, 11)


def test_clip_drops_outside_and_duplicates():
    clipped = clip_slots(["d0_h10", "d0_h9", "d0_h10", "d5_h9", "d00_h09", "nope"], 1, 9, 11)
    assert clipped == ["d0_h10", "d0_h9"]


def test_clip_drops_oversized_ids_without_raising():
    clipped = clip_slots(["d" + "9" * 5000 + "_h9", "d0_h9"], 1, 9, 11)
    assert clipped == ["d0_h9"]
