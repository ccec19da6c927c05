"""Daycare sessions and the bookings that fill them.

``DaycareSession.current_bookings`` caches how many bookings are BOOKED or
CHECKED_IN. It is only ever changed in the same commit as the booking write
that justifies it, with the session row locked.
"""
from __future__ import annotations

from collections.abc import Mapping
from datetime import date
from decimal import Decimal

from flask import current_app

from .auth import Actor
from .errors import BookingError, bad_request, conflict, forbidden, not_found
from .extensions import db
from .models import (ACTIVE_DAYCARE_STATUSES, DAYCARE_BOOKING_STATUSES,
                     DAYCARE_SESSION_STATUSES, DaycareBooking, DaycareRoom,
                     DaycareSession, Pet)
from .scopes import scope_for, scoped_daycare_bookings, scoped_daycare_sessions

# (from, to) -> change to the session's booking counter. Pairs not listed are refused.
COUNTER_EFFECTS = {
    ("BOOKED", "CHECKED_IN"): 0,
    ("CANCELLED", "CHECKED_IN"): 1,
    ("CANCELLED", "BOOKED"): 1,
    ("BOOKED", "CANCELLED"): -1,
    ("CHECKED_IN", "CANCELLED"): -1,
    ("CHECKED_IN", "CHECKED_OUT"): -1,
}


def _locked_session(session_id: int) -> DaycareSession | None:
    return (
        DaycareSession.query.filter(DaycareSession.session_id == session_id)
        .with_for_update()
        .first()
    )


def _full_or_closed(session: DaycareSession) -> BookingError:
    return bad_request(f"Daycare session for {session.date.isoformat()} is full or closed.")


def _adjust_bookings(session: DaycareSession, delta: int) -> None:
    if not delta:
        return
    session.current_bookings = session.current_bookings + delta
    if session.status == "AVAILABLE" and not session.has_capacity:
        session.status = "FULL"
    elif session.status == "FULL" and session.has_capacity:
        session.status = "AVAILABLE"
    current_app.logger.info(
        "Daycare session %s bookings %+d -> %s/%s",
        session.session_id,
        delta,
        session.current_bookings,
        session.total_capacity,
    )


def _active_booking(pet_id: int, session_id: int, exclude_booking_id: int | None = None):
    query = DaycareBooking.query.filter(
        DaycareBooking.pet_id == pet_id,
        DaycareBooking.session_id == session_id,
        DaycareBooking.status.in_(ACTIVE_DAYCARE_STATUSES),
    )
    if exclude_booking_id is not None:
        query = query.filter(DaycareBooking.booking_id != exclude_booking_id)
    return query.first()


def recount_bookings(session: DaycareSession) -> int:
    """Count the bookings that should be reflected in ``current_bookings``."""
    return session.bookings.filter(DaycareBooking.status.in_(ACTIVE_DAYCARE_STATUSES)).count()


# ---------------------------------------------------------------------------
# Bookings
# ---------------------------------------------------------------------------

def book_daycare_session(
    actor: Actor, session_id: int, pet_id: int, room_id: int | None = None
) -> DaycareBooking | BookingError:
    """Reserve a place for a pet and count it against the session's capacity."""
    if actor.is_staff:
        return forbidden("Only owners and administrators can book daycare sessions.")

    session = _locked_session(session_id)
    if session is None:
        return not_found(f'Daycare session with ID "{session_id}" not found.')
    if session.status == "CLOSED" or not session.has_capacity:
        return _full_or_closed(session)

    pet = db.session.get(Pet, pet_id)
    if pet is None:
        return not_found(f'Pet with ID "{pet_id}" not found.')
    if pet.owner_id != actor.user_id and not actor.is_admin:
        return forbidden(f'Pet with ID "{pet_id}" does not belong to the authenticated user.')

    if _active_booking(pet.pet_id, session.session_id) is not None:
        return conflict(f'Pet "{pet.name}" is already booked for this daycare session.')

    if room_id is not None and db.session.get(DaycareRoom, room_id) is None:
        return not_found(f'Daycare room with ID "{room_id}" not found.')

    booking = DaycareBooking(
        session_id=session.session_id,
        pet_id=pet.pet_id,
        room_id=room_id,
        status="BOOKED",
    )
    db.session.add(booking)
    _adjust_bookings(session, 1)
    db.session.commit()
    return booking


def update_daycare_booking(
    actor: Actor,
    booking_id: int,
    status: str | None = None,
    room_id: int | None = None,
) -> DaycareBooking | BookingError:
    """Change a booking's status and/or room, keeping the session counter in step."""
    booking = db.session.get(DaycareBooking, booking_id)
    if booking is None:
        return not_found(f'Daycare booking with ID "{booking_id}" not found.')

    if status is not None and status not in DAYCARE_BOOKING_STATUSES:
        return bad_request(f"status must be one of: {', '.join(DAYCARE_BOOKING_STATUSES)}")

    if actor.is_owner:
        if status is not None and status != "CANCELLED":
            return forbidden("Owners can only cancel their own daycare bookings.")
        if booking.pet.owner_id != actor.user_id:
            return forbidden("You do not have permission to update this daycare booking.")
        if room_id is not None:
            return forbidden("Owners cannot assign daycare rooms.")
        if booking.status in ("CHECKED_IN", "CHECKED_OUT"):
            return bad_request("Cannot cancel a checked-in or checked-out booking.")

    if status is None and room_id is None:
        return bad_request("No valid fields provided for update.")

    delta = 0
    if status is not None and status != booking.status:
        if (booking.status, status) not in COUNTER_EFFECTS:
            return bad_request(
                f"Cannot move a daycare booking from {booking.status} to {status}."
            )
        delta = COUNTER_EFFECTS[(booking.status, status)]

    session = _locked_session(booking.session_id)
    if delta > 0:
        if session.status == "CLOSED" or not session.has_capacity:
            return _full_or_closed(session)
        if _active_booking(booking.pet_id, booking.session_id, booking.booking_id) is not None:
            return conflict("This pet already has an active booking for this daycare session.")

    if room_id is not None:
        if db.session.get(DaycareRoom, room_id) is None:
            return not_found(f'Daycare room with ID "{room_id}" not found.')
        booking.room_id = room_id

    if status is not None:
        booking.status = status
    _adjust_bookings(session, delta)
    db.session.commit()
    return booking


def remove_daycare_booking(actor: Actor, booking_id: int) -> BookingError | None:
    """Delete a booking, releasing its place if it still held one."""
    booking = db.session.get(DaycareBooking, booking_id)
    if booking is None:
        return not_found(f'Daycare booking with ID "{booking_id}" not found.')

    if actor.is_staff:
        return forbidden("You do not have permission to delete this daycare booking.")
    if actor.is_owner:
        if booking.pet.owner_id != actor.user_id:
            return forbidden("You do not have permission to delete this daycare booking.")
        if booking.status != "BOOKED":
            return bad_request(
                "Only pending (BOOKED) daycare bookings can be deleted by owners. "
                'Please use "cancel" for other statuses.'
            )

    if booking.status in ACTIVE_DAYCARE_STATUSES:
        _adjust_bookings(_locked_session(booking.session_id), -1)
    db.session.delete(booking)
    db.session.commit()
    return None


def list_daycare_bookings(actor: Actor) -> list[DaycareBooking]:
    return (
        scoped_daycare_bookings(scope_for(actor))
        .order_by(DaycareBooking.created_at.desc())
        .all()
    )


def get_daycare_booking(actor: Actor, booking_id: int) -> DaycareBooking | BookingError:
    booking = db.session.get(DaycareBooking, booking_id)
    if booking is None:
        return not_found(f'Daycare booking with ID "{booking_id}" not found.')
    if actor.is_owner and booking.pet.owner_id != actor.user_id:
        return forbidden("You do not have permission to view this daycare booking.")
    return booking


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

def create_daycare_session(
    actor: Actor,
    session_date: date,
    total_capacity: int,
    price: Decimal,
    status: str | None = None,
) -> DaycareSession | BookingError:
    if not actor.is_admin:
        return forbidden("Only administrators can manage daycare sessions.")
    if total_capacity < 1:
        return bad_request("total_capacity must be at least 1")
    if price <= 0:
        return bad_request("price must be positive")
    if status is not None and status not in DAYCARE_SESSION_STATUSES:
        return bad_request(f"status must be one of: {', '.join(DAYCARE_SESSION_STATUSES)}")

    if DaycareSession.query.filter_by(date=session_date).first() is not None:
        return conflict(f"Daycare session for date {session_date.isoformat()} already exists.")

    session = DaycareSession(
        date=session_date,
        total_capacity=total_capacity,
        current_bookings=0,
        price=price,
        status=status or "AVAILABLE",
    )
    db.session.add(session)
    db.session.commit()
    return session


def list_daycare_sessions(actor: Actor) -> list[DaycareSession]:
    return scoped_daycare_sessions(scope_for(actor)).order_by(DaycareSession.date).all()


def get_daycare_session(actor: Actor, session_id: int) -> DaycareSession | BookingError:
    session = db.session.get(DaycareSession, session_id)
    if session is None:
        return not_found(f'Daycare session with ID "{session_id}" not found.')
    if actor.is_owner and (session.status == "CLOSED" or not session.has_capacity):
        return not_found("Daycare session not available for booking.")
    return session


def update_daycare_session(
    actor: Actor, session_id: int, changes: Mapping
) -> DaycareSession | BookingError:
    """Edit date, capacity, price or status of a session.

    ``changes`` holds already-parsed values under ``new_date``,
    ``total_capacity``, ``price`` and ``status``.
    """
    if not actor.is_admin:
        return forbidden("Only administrators can manage daycare sessions.")

    session = _locked_session(session_id)
    if session is None:
        return not_found(f'Daycare session with ID "{session_id}" not found.')

    new_date = changes.get("new_date")
    if new_date is not None and new_date != session.date:
        clash = DaycareSession.query.filter_by(date=new_date).first()
        if clash is not None and clash.session_id != session.session_id:
            return conflict(f"Daycare session for date {new_date.isoformat()} already exists.")

    total_capacity = changes.get("total_capacity")
    if total_capacity is not None:
        if total_capacity < 0:
            return bad_request("total_capacity cannot be negative")
        if total_capacity < session.current_bookings:
            return bad_request(
                f"New capacity ({total_capacity}) cannot be less than current bookings "
                f"({session.current_bookings})."
            )

    price = changes.get("price")
    if price is not None and price <= 0:
        return bad_request("price must be positive")

    status = changes.get("status")
    if status is not None and status not in DAYCARE_SESSION_STATUSES:
        return bad_request(f"status must be one of: {', '.join(DAYCARE_SESSION_STATUSES)}")

    if new_date is not None:
        session.date = new_date
    if total_capacity is not None:
        session.total_capacity = total_capacity
    if price is not None:
        session.price = price
    if status is not None:
        session.status = status
    elif total_capacity is not None and session.status != "CLOSED":
        session.status = "AVAILABLE" if session.has_capacity else "FULL"

    db.session.commit()
    return session


def remove_daycare_session(actor: Actor, session_id: int) -> BookingError | None:
    if not actor.is_admin:
        return forbidden("Only administrators can manage daycare sessions.")

    session = db.session.get(DaycareSession, session_id)
    if session is None:
        return not_found(f'Daycare session with ID "{session_id}" not found.')
    if session.bookings.count() > 0:
        return bad_request("Cannot delete daycare session with existing bookings.")

    db.session.delete(session)
    db.session.commit()
    return None
