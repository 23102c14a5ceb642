"""Slot availability for the single shared consultation calendar.

Every non-cancelled appointment on a day occupies the half-open interval
``[start, start + duration)`` measured in minutes since midnight. A candidate
slot is offered as available only when it overlaps none of those intervals.
All lawyers share one capacity unit: two consultations never run at once.
"""

from dataclasses import dataclass
from datetime import date, time
from typing import Iterable

from sqlalchemy.orm import Session

from backend.models.appointment import Appointment

FALLBACK_DURATION_MINUTES = 30
CANCELLED_STATUS = 'cancelled'


@dataclass(frozen=True)
class BusyInterval:
    start: int
    end: int


@dataclass(frozen=True)
class DayWindow:
    name: str
    start: time
    end: time

    @property
    def start_minutes(self) -> int:
        return to_minutes(self.start)

    @property
    def end_minutes(self) -> int:
        return to_minutes(self.end)


@dataclass(frozen=True)
class TimeSlot:
    time: time
    available: bool


DAY_WINDOWS = {
    'morning': DayWindow('morning', time(9, 0), time(12, 0)),
    'afternoon': DayWindow('afternoon', time(14, 0), time(17, 0)),
    'evening': DayWindow('evening', time(17, 0), time(20, 0)),
}


def to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def from_minutes(minutes: int) -> time:
    return time(minutes // 60, minutes % 60)


def effective_duration(duration_minutes: int | None) -> int:
    # Legacy rows were stored without a duration.
    if not duration_minutes or duration_minutes <= 0:
        return FALLBACK_DURATION_MINUTES
    return duration_minutes


def compute_busy_intervals(bookings: Iterable[tuple]) -> list[BusyInterval]:
    """Map ``(start_time, duration_minutes[, status])`` rows to busy intervals.

    Rows whose optional third element is ``'cancelled'`` occupy nothing.
    """
    intervals: list[BusyInterval] = []
    for booking in bookings:
        start_time, duration_minutes = booking[0], booking[1]
        if len(booking) > 2 and booking[2] == CANCELLED_STATUS:
            continue
        start = to_minutes(start_time)
        intervals.append(BusyInterval(start, start + effective_duration(duration_minutes)))
    return intervals


def overlaps_any(start: int, end: int, busy_intervals: Iterable[BusyInterval]) -> bool:
    return any(start < busy.end and end > busy.start for busy in busy_intervals)


def generate_slots(
    window: DayWindow,
    service_duration: int,
    busy_intervals: Iterable[BusyInterval],
) -> list[TimeSlot]:
    if service_duration <= 0:
        raise ValueError('Service duration must be a positive number of minutes.')

    busy = list(busy_intervals)
    slots: list[TimeSlot] = []
    current = window.start_minutes

    while current + service_duration <= window.end_minutes:
        candidate_end = current + service_duration
        slots.append(
            TimeSlot(
                time=from_minutes(current),
                available=not overlaps_any(current, candidate_end, busy),
            )
        )
        current += service_duration

    return slots


def find_window(start_time: time, duration_minutes: int) -> DayWindow | None:
    """Return the window that fully contains the requested consultation."""
    start = to_minutes(start_time)
    end = start + duration_minutes
    for window in DAY_WINDOWS.values():
        if window.start_minutes <= start and end <= window.end_minutes:
            return window
    return None


def fetch_busy_intervals(db: Session, day: date) -> list[BusyInterval]:
    """Load busy intervals for ``day``; database errors propagate to the caller."""
    rows = db.query(Appointment.time, Appointment.duration_minutes).filter(
        Appointment.date == day,
        Appointment.status != CANCELLED_STATUS,
    ).all()
    return compute_busy_intervals(rows)
