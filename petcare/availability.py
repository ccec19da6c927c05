"""Read-side lookups over staff availability and committed appointments."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import func

from .extensions import db
from .intervals import contains_interval, overlaps
from .models import INACTIVE_APPOINTMENT_STATUSES, Appointment, Service, StaffAvailability


@dataclass(frozen=True)
class BookedInterval:
    appointment_id: int
    start: datetime
    end: datetime


def longest_service_duration() -> timedelta:
    """Upper bound on how far back an appointment can start and still reach a window."""
    minutes = db.session.query(func.max(Service.duration_minutes)).scalar()
    return timedelta(minutes=minutes or 0)


def availability_blocks(staff_id: int, window_start: datetime, window_end: datetime) -> list[StaffAvailability]:
    return (
        StaffAvailability.query.filter(
            StaffAvailability.staff_id == staff_id,
            StaffAvailability.start_time < window_end,
            StaffAvailability.end_time > window_start,
        )
        .order_by(StaffAvailability.start_time)
        .all()
    )


def covering_block(staff_id: int, start: datetime, end: datetime) -> StaffAvailability | None:
    """Return an availability block that fully contains [start, end), if any."""
    for block in availability_blocks(staff_id, start, end):
        if contains_interval(block.start_time, block.end_time, start, end):
            return block
    return None


def committed_intervals(
    staff_id: int,
    window_start: datetime,
    window_end: datetime,
    exclude_appointment_id: int | None = None,
) -> list[BookedInterval]:
    """Intervals of the staff member's live appointments that touch the window.

    Appointments whose service has no duration cannot be expanded to an
    interval and are skipped.
    """
    earliest = window_start - longest_service_duration()
    query = (
        db.session.query(Appointment.appointment_id, Appointment.starts_at, Service.duration_minutes)
        .join(Service, Appointment.service_id == Service.service_id)
        .filter(
            Appointment.staff_id == staff_id,
            Appointment.status.notin_(INACTIVE_APPOINTMENT_STATUSES),
            Appointment.starts_at >= earliest,
            Appointment.starts_at < window_end,
        )
    )
    if exclude_appointment_id is not None:
        query = query.filter(Appointment.appointment_id != exclude_appointment_id)

    booked = []
    for appointment_id, starts_at, duration_minutes in query.order_by(Appointment.starts_at):
        if duration_minutes is None:
            continue
        end = starts_at + timedelta(minutes=duration_minutes)
        if overlaps(starts_at, end, window_start, window_end):
            booked.append(BookedInterval(appointment_id, starts_at, end))
    return booked


def first_conflict(
    staff_id: int,
    start: datetime,
    end: datetime,
    exclude_appointment_id: int | None = None,
) -> BookedInterval | None:
    for interval in committed_intervals(staff_id, start, end, exclude_appointment_id):
        if overlaps(start, end, interval.start, interval.end):
            return interval
    return None
