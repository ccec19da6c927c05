"""Activity logs: notes staff keep about a pet during a visit or daycare stay.

A log may point at one appointment or one daycare booking, never both, and
always at the same pet as the record it points at. Owners can read the logs
of their own pets; staff write them; only administrators delete them.
"""
from __future__ import annotations

from collections.abc import Mapping

from .auth import Actor
from .errors import BookingError, bad_request, forbidden, not_found
from .extensions import db
from .models import ACTIVITY_TYPES, ActivityLog, Appointment, DaycareBooking, Pet
from .scopes import scope_for, scoped_activity_logs

MAX_DETAILS_LENGTH = 500
LOG_FIELDS = ("activity_type", "details", "pet_id", "daycare_booking_id", "appointment_id")


def _check_details(details: str | None) -> BookingError | None:
    if not details:
        return bad_request("details cannot be empty")
    if len(details) > MAX_DETAILS_LENGTH:
        return bad_request(f"details must be at most {MAX_DETAILS_LENGTH} characters")
    return None


def _check_links(pet_id: int, daycare_booking_id: int | None, appointment_id: int | None) -> BookingError | None:
    """Validate the pet and the optional visit the log is attached to."""
    if daycare_booking_id is not None and appointment_id is not None:
        return bad_request(
            "An activity log can only be linked to a daycare booking OR an appointment, not both."
        )

    if db.session.get(Pet, pet_id) is None:
        return not_found(f'Pet with ID "{pet_id}" not found.')

    if daycare_booking_id is not None:
        booking = db.session.get(DaycareBooking, daycare_booking_id)
        if booking is None:
            return not_found(f'Daycare booking with ID "{daycare_booking_id}" not found.')
        if booking.pet_id != pet_id:
            return bad_request(
                f'The provided pet_id "{pet_id}" does not match the pet for daycare booking '
                f'"{daycare_booking_id}".'
            )

    if appointment_id is not None:
        appointment = db.session.get(Appointment, appointment_id)
        if appointment is None:
            return not_found(f'Appointment with ID "{appointment_id}" not found.')
        if appointment.pet_id != pet_id:
            return bad_request(
                f'The provided pet_id "{pet_id}" does not match the pet for appointment '
                f'"{appointment_id}".'
            )
    return None


def create_activity_log(
    actor: Actor,
    pet_id: int,
    activity_type: str,
    details: str,
    daycare_booking_id: int | None = None,
    appointment_id: int | None = None,
) -> ActivityLog | BookingError:
    """Record an activity; the author is the calling staff member or admin."""
    if actor.is_owner:
        return forbidden("Only staff members can write activity logs.")
    if activity_type not in ACTIVITY_TYPES:
        return bad_request(f"activity_type must be one of: {', '.join(ACTIVITY_TYPES)}")
    error = _check_details(details) or _check_links(pet_id, daycare_booking_id, appointment_id)
    if error is not None:
        return error

    log = ActivityLog(
        pet_id=pet_id,
        staff_id=actor.user_id,
        activity_type=activity_type,
        details=details,
        daycare_booking_id=daycare_booking_id,
        appointment_id=appointment_id,
    )
    db.session.add(log)
    db.session.commit()
    return log


def list_activity_logs(
    actor: Actor,
    pet_id: int | None = None,
    daycare_booking_id: int | None = None,
    appointment_id: int | None = None,
) -> list[ActivityLog]:
    query = scoped_activity_logs(scope_for(actor))
    if pet_id is not None:
        query = query.filter(ActivityLog.pet_id == pet_id)
    if daycare_booking_id is not None:
        query = query.filter(ActivityLog.daycare_booking_id == daycare_booking_id)
    if appointment_id is not None:
        query = query.filter(ActivityLog.appointment_id == appointment_id)
    return query.order_by(ActivityLog.timestamp.desc(), ActivityLog.log_id.desc()).all()


def get_activity_log(actor: Actor, log_id: int) -> ActivityLog | BookingError:
    log = db.session.get(ActivityLog, log_id)
    if log is None:
        return not_found(f'Activity log with ID "{log_id}" not found.')
    if actor.is_owner and (log.pet is None or log.pet.owner_id != actor.user_id):
        return forbidden("You do not have permission to view this activity log.")
    return log


def update_activity_log(actor: Actor, log_id: int, changes: Mapping) -> ActivityLog | BookingError:
    """Staff and admins may correct any log; links are re-validated together."""
    if actor.is_owner:
        return forbidden("You do not have permission to update this activity log.")

    log = db.session.get(ActivityLog, log_id)
    if log is None:
        return not_found(f'Activity log with ID "{log_id}" not found.')

    updates = {key: changes[key] for key in LOG_FIELDS if key in changes}
    if not updates:
        return bad_request("No valid fields provided for update.")

    if "activity_type" in updates and updates["activity_type"] not in ACTIVITY_TYPES:
        return bad_request(f"activity_type must be one of: {', '.join(ACTIVITY_TYPES)}")
    if "details" in updates:
        error = _check_details(updates["details"])
        if error is not None:
            return error
    if "pet_id" in updates and updates["pet_id"] is None:
        return bad_request("pet_id cannot be empty")

    pet_id = updates.get("pet_id", log.pet_id)
    booking_id = updates.get("daycare_booking_id", log.daycare_booking_id)
    appointment_id = updates.get("appointment_id", log.appointment_id)
    error = _check_links(pet_id, booking_id, appointment_id)
    if error is not None:
        return error

    for key, value in updates.items():
        setattr(log, key, value)
    db.session.commit()
    return log


def remove_activity_log(actor: Actor, log_id: int) -> BookingError | None:
    log = db.session.get(ActivityLog, log_id)
    if log is None:
        return not_found(f'Activity log with ID "{log_id}" not found.')
    if not actor.is_admin:
        return forbidden("You do not have permission to delete this activity log.")

    db.session.delete(log)
    db.session.commit()
    return None
