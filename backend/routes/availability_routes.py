from datetime import date, time

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.database import ensure_appointment_schema, get_db
from backend.services.availability import DAY_WINDOWS, fetch_busy_intervals, generate_slots

router = APIRouter(tags=['availability'])

DEFAULT_SERVICE_DURATION_MINUTES = 30
DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and Postgres credentials.'


class DayWindowResponse(BaseModel):
    name: str
    start: time
    end: time


class TimeSlotResponse(BaseModel):
    time: time
    available: bool


def ensure_database_ready() -> None:
    try:
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.get('/windows', response_model=list[DayWindowResponse])
def list_day_windows():
    return [
        DayWindowResponse(name=window.name, start=window.start, end=window.end)
        for window in DAY_WINDOWS.values()
    ]


@router.get('/slots', response_model=list[TimeSlotResponse])
def list_time_slots(
    day: date = Query(..., alias='date'),
    window: str = Query(default='morning'),
    duration_minutes: int = Query(default=DEFAULT_SERVICE_DURATION_MINUTES, gt=0),
    db: Session = Depends(get_db),
):
    day_window = DAY_WINDOWS.get(window.strip().lower())
    if day_window is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown time window. Choose one of: {', '.join(DAY_WINDOWS)}.",
        )

    if day < date.today():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Appointments cannot be booked in the past.',
        )

    if duration_minutes > day_window.end_minutes - day_window.start_minutes:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='The service is longer than the selected time window.',
        )

    ensure_database_ready()

    try:
        busy_intervals = fetch_busy_intervals(db, day)
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc

    return [
        TimeSlotResponse(time=slot.time, available=slot.available)
        for slot in generate_slots(day_window, duration_minutes, busy_intervals)
    ]
