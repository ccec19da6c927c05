"""Bookable slot search for a service on a given day."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from flask import current_app

from .availability import availability_blocks, committed_intervals
from .errors import BookingError, bad_request, not_found
from .extensions import db
from .intervals import generate_candidate_starts, overlaps
from .models import STAFF_ROLES, Service, User, isoformat_utc, staff_services


@dataclass(frozen=True)
class Slot:
    start_time: datetime
    end_time: datetime
    staff_id: int
    staff_name: str

    def to_dict(self) -> dict[str, object]:
        return {
            "start_time": isoformat_utc(self.start_time),
            "end_time": isoformat_utc(self.end_time),
            "staff_id": self.staff_id,
            "staff_name": self.staff_name,
        }


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """UTC midnight of ``day`` and of the following day."""
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def bookable_service(service_id: int) -> Service | BookingError:
    service = db.session.get(Service, service_id)
    if service is None or not service.is_active or service.duration_minutes is None:
        return not_found(f'Active service with ID "{service_id}" not found or duration not set.')
    return service


def qualified_staff(service: Service, staff_id: int | None = None) -> list[User] | BookingError:
    """Staff who may perform ``service``: the requested member, or everyone qualified."""
    if staff_id is not None:
        staff = db.session.get(User, staff_id)
        if staff is None or not staff.is_staff:
            return not_found(f'Staff member with ID "{staff_id}" not found or is not valid staff.')
        if service not in staff.qualified_services:
            return bad_request(
                f"Staff member {staff.first_name} is not qualified for service {service.name}."
            )
        return [staff]

    return (
        User.query.join(staff_services, staff_services.c.staff_id == User.user_id)
        .filter(
            staff_services.c.service_id == service.service_id,
            User.role.in_(STAFF_ROLES),
        )
        .order_by(User.user_id)
        .all()
    )


def find_available_slots(
    service_id: int,
    day: date,
    staff_id: int | None = None,
    step_minutes: int | None = None,
) -> list[Slot] | BookingError:
    """Compute every free slot for ``service_id`` on ``day``.

    A slot must fit entirely inside one of the staff member's availability
    blocks and inside the day, and must not overlap any live appointment of
    that staff member. The result is a snapshot: nothing is reserved.
    """
    service = bookable_service(service_id)
    if isinstance(service, BookingError):
        return service

    staff_members = qualified_staff(service, staff_id)
    if isinstance(staff_members, BookingError):
        return staff_members
    if not staff_members:
        return []

    if step_minutes is None:
        step_minutes = current_app.config.get("SLOT_STEP_MINUTES", 15)
    step = timedelta(minutes=step_minutes)
    duration = service.duration
    day_start, day_end = day_bounds(day)

    slots: list[Slot] = []
    for staff in staff_members:
        booked = committed_intervals(staff.user_id, day_start, day_end)
        seen: set[datetime] = set()

        for block in availability_blocks(staff.user_id, day_start, day_end):
            candidates = generate_candidate_starts(
                block.start_time,
                block.end_time,
                duration,
                step,
                window_start=day_start,
                window_end=day_end,
            )
            for start in candidates:
                if start in seen:
                    continue
                end = start + duration
                if any(overlaps(start, end, b.start, b.end) for b in booked):
                    continue
                seen.add(start)
                slots.append(Slot(start, end, staff.user_id, staff.full_name))

    slots.sort(key=lambda slot: (slot.start_time, slot.staff_id))
    return slots
