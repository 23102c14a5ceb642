from datetime import date, time

import pytest

from backend.models.appointment import Appointment
from backend.services.availability import (
    DAY_WINDOWS,
    BusyInterval,
    DayWindow,
    compute_busy_intervals,
    fetch_busy_intervals,
    find_window,
    generate_slots,
    overlaps_any,
)

MORNING = DAY_WINDOWS['morning']


def _slot_table(slots) -> list[tuple[time, bool]]:
    return [(slot.time, slot.available) for slot in slots]


def test_compute_busy_intervals_maps_start_and_duration_to_minutes() -> None:
    intervals = compute_busy_intervals([(time(9, 30), 45), (time(14, 0), 60)])

    assert intervals == [BusyInterval(570, 615), BusyInterval(840, 900)]


@pytest.mark.parametrize('duration_minutes', [None, 0, -15])
def test_compute_busy_intervals_falls_back_to_thirty_minutes(duration_minutes) -> None:
    intervals = compute_busy_intervals([(time(10, 0), duration_minutes)])

    assert intervals == [BusyInterval(600, 630)]


def test_compute_busy_intervals_ignores_cancelled_rows() -> None:
    intervals = compute_busy_intervals([
        (time(9, 0), 30, 'cancelled'),
        (time(10, 0), 30, 'pending'),
    ])

    assert intervals == [BusyInterval(600, 630)]


@pytest.mark.parametrize(
    ('candidate', 'busy', 'expected_overlap'),
    [
        ((540, 570), (570, 600), False),  # candidate ends where busy starts
        ((600, 630), (570, 600), False),  # candidate starts where busy ends
        ((540, 570), (600, 630), False),  # disjoint, before
        ((660, 690), (600, 630), False),  # disjoint, after
        ((540, 600), (570, 630), True),   # partial overlap at the end
        ((600, 660), (570, 630), True),   # partial overlap at the start
        ((540, 660), (570, 600), True),   # candidate contains busy
        ((575, 595), (570, 600), True),   # busy contains candidate
        ((570, 600), (570, 600), True),   # identical
        ((599, 629), (570, 600), True),   # one minute shared
    ],
)
def test_overlap_table(candidate, busy, expected_overlap) -> None:
    assert overlaps_any(candidate[0], candidate[1], [BusyInterval(*busy)]) is expected_overlap


def test_slot_is_unavailable_iff_it_overlaps_some_busy_interval() -> None:
    busy = [BusyInterval(560, 575), BusyInterval(650, 700)]

    for slot in generate_slots(MORNING, 20, busy):
        start = slot.time.hour * 60 + slot.time.minute
        end = start + 20
        overlapping = any(start < interval.end and end > interval.start for interval in busy)
        assert slot.available is not overlapping


def test_morning_window_with_one_booking_at_nine() -> None:
    busy = compute_busy_intervals([(time(9, 0), 30)])

    slots = generate_slots(MORNING, 30, busy)

    assert _slot_table(slots) == [
        (time(9, 0), False),
        (time(9, 30), True),
        (time(10, 0), True),
        (time(10, 30), True),
        (time(11, 0), True),
        (time(11, 30), True),
    ]


def test_forty_five_minute_service_fills_window_exactly() -> None:
    slots = generate_slots(MORNING, 45, [])

    assert [slot.time for slot in slots] == [time(9, 0), time(9, 45), time(10, 30), time(11, 15)]
    assert all(slot.available for slot in slots)


def test_slots_stop_before_a_partial_step() -> None:
    slots = generate_slots(DayWindow('short', time(9, 0), time(10, 10)), 30, [])

    assert [slot.time for slot in slots] == [time(9, 0), time(9, 30)]


def test_longer_service_blocked_by_short_booking() -> None:
    busy = compute_busy_intervals([(time(10, 20), 20)])

    slots = generate_slots(MORNING, 60, busy)

    assert _slot_table(slots) == [
        (time(9, 0), True),
        (time(10, 0), False),
        (time(11, 0), True),
    ]


def test_generate_slots_is_deterministic() -> None:
    busy = compute_busy_intervals([(time(9, 30), 45), (time(11, 0), None)])

    assert generate_slots(MORNING, 30, busy) == generate_slots(MORNING, 30, busy)


def test_generate_slots_rejects_non_positive_duration() -> None:
    with pytest.raises(ValueError):
        generate_slots(MORNING, 0, [])


def test_find_window_requires_the_whole_consultation_to_fit() -> None:
    assert find_window(time(11, 30), 30) == MORNING
    assert find_window(time(11, 45), 30) is None
    assert find_window(time(17, 0), 60) == DAY_WINDOWS['evening']
    assert find_window(time(12, 30), 30) is None


def test_fetch_busy_intervals_reads_only_live_appointments_on_the_day(db_session) -> None:
    day = date(2026, 3, 2)
    db_session.add_all([
        Appointment(date=day, time=time(9, 0), duration_minutes=30, status='confirmed'),
        Appointment(date=day, time=time(10, 0), duration_minutes=None, status='pending'),
        Appointment(date=day, time=time(11, 0), duration_minutes=60, status='cancelled'),
        Appointment(date=date(2026, 3, 3), time=time(9, 0), duration_minutes=30, status='confirmed'),
    ])
    db_session.commit()

    intervals = fetch_busy_intervals(db_session, day)

    assert sorted(intervals, key=lambda interval: interval.start) == [
        BusyInterval(540, 570),
        BusyInterval(600, 630),
    ]
