"""Appointment booking, rescheduling and cancellation.

Every write re-validates the staff member's availability and the no-overlap
rule inside the same transaction that commits the change, so a slot returned
earlier by the slot finder may still be refused here.
"""
from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime, time, timezone

from flask import current_app
from sqlalchemy.exc import IntegrityError

from .auth import Actor
from .availability import covering_block, first_conflict
from .errors import BookingError, bad_request, conflict, forbidden, not_found
from .extensions import db
from .models import (INACTIVE_APPOINTMENT_STATUSES, Appointment, Pet, Service, User,
                     parse_utc_datetime)
from .scopes import scope_for, scoped_appointments
from .status import check_transition, is_terminal

UNIQUE_SLOT_CONSTRAINT = "unique_staff_time_slot"

OWNER_FORBIDDEN_FIELDS = ("staff_id", "service_id", "pet_id", "starts_at", "new_date", "new_time")
UPDATABLE_FIELDS = ("notes",) + OWNER_FORBIDDEN_FIELDS + ("status",)


def _locked_staff(staff_id: int) -> User | BookingError:
    """Load a staff member, holding a row lock until commit where supported.

    Bookings for one staff member are serialised on this lock so the overlap
    check and the insert cannot interleave with a competing request.
    """
    staff = User.query.filter(User.user_id == staff_id).with_for_update().first()
    if staff is None or not staff.is_staff:
        return not_found(f'Staff member with ID "{staff_id}" not found or is not valid staff.')
    return staff


def _check_qualified(staff: User, service: Service) -> BookingError | None:
    if service not in staff.qualified_services:
        return bad_request(
            f'Staff member "{staff.first_name}" is not qualified for service "{service.name}".'
        )
    return None


def _check_schedule(
    staff: User,
    starts_at: datetime,
    ends_at: datetime,
    exclude_appointment_id: int | None = None,
) -> BookingError | None:
    if covering_block(staff.user_id, starts_at, ends_at) is None:
        return conflict(
            f'Staff member "{staff.first_name}" is not available at the requested time '
            "for this service duration."
        )
    if first_conflict(staff.user_id, starts_at, ends_at, exclude_appointment_id) is not None:
        return conflict("The selected staff member has a conflicting appointment during this time.")
    return None


def _commit(appointment: Appointment, message: str) -> Appointment | BookingError:
    staff_id = appointment.staff_id
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        if UNIQUE_SLOT_CONSTRAINT in str(exc.orig) or "appointments.staff_id" in str(exc.orig):
            current_app.logger.warning(
                "Appointment commit lost a race for staff %s", staff_id
            )
            return conflict(message)
        raise
    return appointment


def create_appointment(
    actor: Actor,
    pet_id: int,
    service_id: int,
    staff_id: int,
    starts_at: datetime,
    notes: str | None = None,
) -> Appointment | BookingError:
    """Validate and commit a new SCHEDULED appointment."""
    pet = db.session.get(Pet, pet_id)
    if pet is None:
        return not_found(f'Pet with ID "{pet_id}" not found.')
    if pet.owner_id != actor.user_id and not actor.is_admin:
        return forbidden(f'Pet with ID "{pet_id}" does not belong to the authenticated user.')

    service = db.session.get(Service, service_id)
    if service is None or not service.is_active:
        return not_found(f'Active service with ID "{service_id}" not found.')
    if service.duration_minutes is None:
        return bad_request(f'Service with ID "{service_id}" does not have a duration configured.')

    staff = _locked_staff(staff_id)
    if isinstance(staff, BookingError):
        return staff

    error = _check_qualified(staff, service)
    if error is not None:
        return error

    ends_at = starts_at + service.duration
    error = _check_schedule(staff, starts_at, ends_at)
    if error is not None:
        return error

    appointment = Appointment(
        owner_id=pet.owner_id,
        pet_id=pet.pet_id,
        service_id=service.service_id,
        staff_id=staff.user_id,
        starts_at=starts_at,
        status="SCHEDULED",
        notes=notes,
    )
    db.session.add(appointment)
    result = _commit(
        appointment, "This time slot with the selected staff is already booked."
    )
    if not isinstance(result, BookingError):
        current_app.logger.info(
            "Appointment %s booked for staff %s at %s",
            appointment.appointment_id,
            staff.user_id,
            starts_at.isoformat(),
        )
    return result


def _rescheduled_start(appointment: Appointment, changes: Mapping) -> datetime | BookingError | None:
    """Work out the requested new start time, if the update asks for one.

    ``starts_at`` carries a full timestamp; ``new_date`` (YYYY-MM-DD) and
    ``new_time`` (HH:MM, optionally with an offset) replace one half of the
    current start each. The result is naive UTC.
    """
    if changes.get("starts_at") is not None:
        parsed = parse_utc_datetime(changes["starts_at"])
        if parsed is None:
            return bad_request("starts_at must be a valid ISO format datetime")
        return parsed

    new_date, new_time = changes.get("new_date"), changes.get("new_time")
    if new_date is None and new_time is None:
        return None

    try:
        day = date.fromisoformat(new_date) if new_date is not None else appointment.starts_at.date()
        clock = (
            time.fromisoformat(new_time) if new_time is not None else appointment.starts_at.time()
        )
    except (TypeError, ValueError):
        return bad_request("Invalid new appointment date/time format.")
    combined = datetime.combine(day, clock)
    if combined.tzinfo is not None:
        combined = combined.astimezone(timezone.utc).replace(tzinfo=None)
    return combined


def update_appointment(actor: Actor, appointment_id: int, changes: Mapping) -> Appointment | BookingError:
    """Apply notes, status, staff and time changes in a single commit.

    Owners may edit notes and cancel. Admins and staff may also change the
    status freely and reschedule (new time and/or staff member), which re-runs
    every booking check while ignoring the appointment's own current slot.
    """
    appointment = db.session.get(Appointment, appointment_id)
    if appointment is None:
        return not_found(f'Appointment with ID "{appointment_id}" not found.')
    if appointment.service is None or appointment.service.duration_minutes is None:
        return bad_request("Cannot process update: existing appointment's service has no duration.")

    if actor.is_owner:
        if appointment.owner_id != actor.user_id:
            return forbidden("You do not have permission to update this appointment.")
        for field in OWNER_FORBIDDEN_FIELDS:
            if field in changes:
                return forbidden(f"Owners are not allowed to update '{field}'.")
    else:
        if "pet_id" in changes and changes["pet_id"] != appointment.pet_id:
            return bad_request("pet_id cannot be changed; book a new appointment instead.")
        if "service_id" in changes and changes["service_id"] != appointment.service_id:
            return bad_request("service_id cannot be changed; book a new appointment instead.")

    if not any(field in changes for field in UPDATABLE_FIELDS):
        return bad_request("No valid fields provided for update.")

    new_status = changes.get("status")
    if new_status is not None:
        error = check_transition(actor.role, appointment.status, new_status)
        if error is not None:
            return error

    new_start = _rescheduled_start(appointment, changes)
    if isinstance(new_start, BookingError):
        return new_start

    new_staff_id = changes.get("staff_id")
    staff_changed = new_staff_id is not None and new_staff_id != appointment.staff_id
    time_changed = new_start is not None and new_start != appointment.starts_at

    if (staff_changed or time_changed) and is_terminal(appointment.status):
        return bad_request(
            f"Cannot reschedule an appointment with status '{appointment.status}'"
        )

    final_status = new_status or appointment.status
    if (staff_changed or time_changed) and final_status not in INACTIVE_APPOINTMENT_STATUSES:
        staff = _locked_staff(new_staff_id if staff_changed else appointment.staff_id)
        if isinstance(staff, BookingError):
            return staff
        error = _check_qualified(staff, appointment.service)
        if error is not None:
            return error
        starts_at = new_start or appointment.starts_at
        error = _check_schedule(
            staff,
            starts_at,
            starts_at + appointment.service.duration,
            exclude_appointment_id=appointment.appointment_id,
        )
        if error is not None:
            return error

    if "notes" in changes:
        appointment.notes = (changes.get("notes") or "").strip() or None
    if new_status is not None:
        appointment.status = new_status
    if staff_changed:
        appointment.staff_id = new_staff_id
    if time_changed:
        appointment.starts_at = new_start

    result = _commit(
        appointment,
        "The updated time slot with the selected staff is already booked.",
    )
    if not isinstance(result, BookingError) and (staff_changed or time_changed):
        current_app.logger.info(
            "Appointment %s rescheduled to staff %s at %s",
            appointment.appointment_id,
            appointment.staff_id,
            appointment.starts_at.isoformat(),
        )
    return result


def cancel_appointment(actor: Actor, appointment_id: int) -> Appointment | BookingError:
    """Mark an appointment CANCELLED; appointments are never hard-deleted."""
    appointment = db.session.get(Appointment, appointment_id)
    if appointment is None:
        return not_found(f'Appointment with ID "{appointment_id}" not found.')

    if actor.is_owner and appointment.owner_id != actor.user_id:
        return forbidden("You do not have permission to cancel this appointment.")

    if appointment.status == "CANCELLED":
        return appointment

    if appointment.status in ("COMPLETED", "NO_SHOW"):
        return bad_request(
            f"Cannot cancel an appointment with status '{appointment.status}'"
        )

    appointment.status = "CANCELLED"
    db.session.commit()
    current_app.logger.info("Appointment %s cancelled by user %s", appointment_id, actor.user_id)
    return appointment


def list_appointments(actor: Actor) -> list[Appointment]:
    return scoped_appointments(scope_for(actor)).order_by(Appointment.starts_at).all()


def get_appointment(actor: Actor, appointment_id: int) -> Appointment | BookingError:
    appointment = db.session.get(Appointment, appointment_id)
    if appointment is None:
        return not_found(f'Appointment with ID "{appointment_id}" not found.')
    visible = scoped_appointments(scope_for(actor)).filter(
        Appointment.appointment_id == appointment_id
    ).first()
    if visible is None:
        return forbidden("You do not have permission to view this appointment.")
    return appointment
