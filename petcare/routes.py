"""HTTP routes for the PetCare backend."""
from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .auth import Actor, get_current_actor
from .booking import (cancel_appointment, create_appointment, get_appointment,
                      list_appointments, update_appointment)
from .daycare import (book_daycare_session, create_daycare_session,
                      get_daycare_booking, get_daycare_session,
                      list_daycare_bookings, list_daycare_sessions,
                      remove_daycare_booking, remove_daycare_session,
                      update_daycare_booking, update_daycare_session)
from .errors import BookingError
from .extensions import db
from .models import StaffAvailability, User, parse_utc_datetime
from .slots import day_bounds, find_available_slots

bp = Blueprint("api", __name__)


def register_routes(app) -> None:
    from .routes_extended import bp_ext

    app.register_blueprint(bp)
    app.register_blueprint(bp_ext)


def _unauthorized():
    return jsonify({"error": "unauthorized", "message": "A valid bearer token is required"}), 401


def _invalid(message: str):
    return jsonify({"error": "invalid_payload", "message": message}), 400


def _database_error(message: str, exc: SQLAlchemyError):
    db.session.rollback()
    current_app.logger.exception(message, exc_info=exc)
    return jsonify({"error": "database_error"}), 500


def _optional_int(value: object) -> int | None | bool:
    """Coerce an optional id; returns False when the value is present but not an integer."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return False
    try:
        return int(value)
    except (TypeError, ValueError):
        return False


def _parse_day(value: object) -> date | None:
    if not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        return None


def _parse_price(value: object) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = Decimal(str(value))
    except InvalidOperation:
        return None
    return parsed if parsed.is_finite() else None


@bp.get("/health")
def health_check() -> tuple[dict[str, str], int]:
    """
    Expose a simple uptime check endpoint.
    ---
    tags:
      - Health
    responses:
      200:
        description: Service is healthy and running.
    """
    return jsonify({"status": "ok"}), 200


@bp.get("/db-health")
def database_health() -> tuple[dict[str, str], int]:
    """Check connectivity to the configured database.
    ---
    tags:
      - Health
    responses:
      200:
        description: Database connection is ok.
      500:
        description: Database connection failed.
    """
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        current_app.logger.exception("Database connectivity check failed", exc_info=exc)
        return jsonify({"database": "unavailable"}), 500

    return jsonify({"database": "ok"}), 200


# ============================================================================
# Appointments
# ============================================================================

@bp.get("/appointments/available-slots")
def available_slots() -> tuple[dict[str, object], int]:
    """List bookable slots for a service on a day.
    ---
    tags:
      - Appointments
    parameters:
      - name: service_id
        in: query
        type: integer
        required: true
      - name: date
        in: query
        type: string
        format: date
        required: true
      - name: staff_id
        in: query
        type: integer
    responses:
      200:
        description: Slots ordered by start time
      400:
        description: Invalid parameters or staff not qualified
      404:
        description: Service or staff not found
      500:
        description: Database error
    """
    service_id = _optional_int(request.args.get("service_id"))
    staff_id = _optional_int(request.args.get("staff_id"))
    day = _parse_day(request.args.get("date"))

    if not service_id or staff_id is False:
        return _invalid("service_id is required and ids must be integers")
    if day is None:
        return _invalid("Invalid date format. Please use YYYY-MM-DD.")

    try:
        result = find_available_slots(service_id, day, staff_id)
        if isinstance(result, BookingError):
            return result.to_response()
        return jsonify({"slots": [slot.to_dict() for slot in result]}), 200

    except SQLAlchemyError as exc:
        return _database_error("Failed to compute available slots", exc)


@bp.get("/appointments")
def list_appointments_route() -> tuple[dict[str, object], int]:
    """Appointments visible to the caller (owners see their own).
    ---
    tags:
      - Appointments
    responses:
      200:
        description: List of appointments
      401:
        description: Missing or invalid token
      500:
        description: Database error
    """
    actor = get_current_actor()
    if actor is None:
        return _unauthorized()

    try:
        appointments = list_appointments(actor)
        return jsonify({"appointments": [appt.to_dict() for appt in appointments]}), 200

    except SQLAlchemyError as exc:
        return _database_error("Failed to fetch appointments", exc)


@bp.post("/appointments")
def create_appointment_route() -> tuple[dict[str, object], int]:
    """Book an appointment.
    ---
    tags:
      - Appointments
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            pet_id:
              type: integer
            service_id:
              type: integer
            staff_id:
              type: integer
            starts_at:
              type: string
              format: date-time
            notes:
              type: string
          required:
            - pet_id
            - service_id
            - staff_id
            - starts_at
    responses:
      201:
        description: Appointment created
      400:
        description: Invalid payload
      403:
        description: Pet belongs to someone else
      404:
        description: Pet, service or staff not found
      409:
        description: Staff not available or already booked
      500:
        description: Database error
    """
    actor = get_current_actor()
    if actor is None:
        return _unauthorized()

    payload = request.get_json(silent=True) or {}

    pet_id = _optional_int(payload.get("pet_id"))
    service_id = _optional_int(payload.get("service_id"))
    staff_id = _optional_int(payload.get("staff_id"))
    if not all([pet_id, service_id, staff_id, payload.get("starts_at")]):
        return _invalid("pet_id, service_id, staff_id, and starts_at are required")

    starts_at = parse_utc_datetime(payload.get("starts_at"))
    if starts_at is None:
        return _invalid(
            "Invalid starts_at format. Please use ISO8601 format (YYYY-MM-DDTHH:mm:ssZ)."
        )

    notes = payload.get("notes")
    if notes is not None and not isinstance(notes, str):
        return _invalid("notes must be a string")
    notes = (notes or "").strip() or None

    try:
        result = create_appointment(actor, pet_id, service_id, staff_id, starts_at, notes)
        if isinstance(result, BookingError):
            return result.to_response()
        return (
            jsonify({"message": "Appointment created successfully", "appointment": result.to_dict()}),
            201,
        )

    except SQLAlchemyError as exc:
        return _database_error("Failed to create appointment", exc)


@bp.get("/appointments/<int:appointment_id>")
def get_appointment_route(appointment_id: int) -> tuple[dict[str, object], int]:
    """Get a single appointment.
    ---
    tags:
      - Appointments
    responses:
      200:
        description: Success
      403:
        description: Not the caller's appointment
      404:
        description: Not found
    """
    actor = get_current_actor()
    if actor is None:
        return _unauthorized()

    try:
        result = get_appointment(actor, appointment_id)
        if isinstance(result, BookingError):
            return result.to_response()
        return jsonify({"appointment": result.to_dict()}), 200

    except SQLAlchemyError as exc:
        return _database_error("Failed to fetch appointment", exc)


@bp.patch("/appointments/<int:appointment_id>")
def update_appointment_route(appointment_id: int) -> tuple[dict[str, object], int]:
    """Update notes/status, or reschedule (staff and admins only).
    ---
    tags:
      - Appointments
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            notes:
              type: string
            status:
              type: string
              enum: [SCHEDULED, CONFIRMED, COMPLETED, CANCELLED, RESCHEDULED, NO_SHOW]
            staff_id:
              type: integer
            starts_at:
              type: string
              format: date-time
            new_date:
              type: string
              format: date
            new_time:
              type: string
              example: "14:30"
    responses:
      200:
        description: Appointment updated
      400:
        description: Invalid input or transition
      403:
        description: Not allowed for the caller's role
      404:
        description: Not found
      409:
        description: New slot unavailable
      500:
        description: Database error
    """
    actor = get_current_actor()
    if actor is None:
        return _unauthorized()

    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return _invalid("A JSON object body is required")

    changes = dict(payload)
    if changes.get("notes") is not None and not isinstance(changes["notes"], str):
        return _invalid("notes must be a string")
    for key in ("staff_id", "pet_id", "service_id"):
        if key in changes:
            value = _optional_int(changes[key])
            if value is False:
                return _invalid(f"{key} must be an integer")
            changes[key] = value

    try:
        result = update_appointment(actor, appointment_id, changes)
        if isinstance(result, BookingError):
            return result.to_response()
        return (
            jsonify({"message": "Appointment updated successfully", "appointment": result.to_dict()}),
            200,
        )

    except SQLAlchemyError as exc:
        return _database_error("Failed to update appointment", exc)


@bp.delete("/appointments/<int:appointment_id>")
def cancel_appointment_route(appointment_id: int) -> tuple[dict[str, object], int]:
    """Cancel an appointment by setting its status to CANCELLED.
    ---
    tags:
      - Appointments
    responses:
      200:
        description: Appointment cancelled (or already cancelled)
      400:
        description: Completed or no-show appointments cannot be cancelled
      403:
        description: Not the caller's appointment
      404:
        description: Not found
      500:
        description: Database error
    """
    actor = get_current_actor()
    if actor is None:
        return _unauthorized()

    try:
        result = cancel_appointment(actor, appointment_id)
        if isinstance(result, BookingError):
            return result.to_response()
        return (
            jsonify({"message": "Appointment cancelled successfully", "appointment": result.to_dict()}),
            200,
        )

    except SQLAlchemyError as exc:
        return _database_error("Failed to cancel appointment", exc)


# ============================================================================
# Staff availability
# ============================================================================

def _can_manage_availability(actor: Actor, staff_id: int) -> bool:
    return actor.is_admin or (actor.is_staff and actor.user_id == staff_id)


@bp.post("/staff/<int:staff_id>/availability")
def create_availability_block(staff_id: int) -> tuple[dict[str, object], int]:
    """Declare a working window for a staff member.
    ---
    tags:
      - Staff
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            start_time:
              type: string
              format: date-time
            end_time:
              type: string
              format: date-time
    responses:
      201:
        description: Created successfully
      400:
        description: Invalid input
      403:
        description: Only admins or the staff member themself
      404:
        description: Staff not found
      500:
        description: Database error
    """
    actor = get_current_actor()
    if actor is None:
        return _unauthorized()
    if not _can_manage_availability(actor, staff_id):
        return jsonify({"error": "forbidden", "message": "Not allowed to edit this availability"}), 403

    payload = request.get_json(silent=True) or {}
    start_time = parse_utc_datetime(payload.get("start_time"))
    end_time = parse_utc_datetime(payload.get("end_time"))
    if start_time is None or end_time is None:
        return _invalid("start_time and end_time must be valid ISO format datetimes")
    if start_time >= end_time:
        return _invalid("start_time must be before end_time")

    try:
        staff = db.session.get(User, staff_id)
        if staff is None or not staff.is_staff:
            return jsonify({"error": "not_found", "message": "Staff not found"}), 404

        block = StaffAvailability(staff_id=staff_id, start_time=start_time, end_time=end_time)
        db.session.add(block)
        db.session.commit()

        return jsonify({"availability": block.to_dict()}), 201

    except SQLAlchemyError as exc:
        return _database_error("Failed to create availability block", exc)


@bp.get("/staff/<int:staff_id>/availability")
def list_availability_blocks(staff_id: int) -> tuple[dict[str, object], int]:
    """Availability blocks of a staff member, optionally limited to one day.
    ---
    tags:
      - Staff
    parameters:
      - name: date
        in: query
        type: string
        format: date
    responses:
      200:
        description: Success
      400:
        description: Invalid date
      404:
        description: Staff not found
    """
    date_arg = request.args.get("date")
    day = _parse_day(date_arg) if date_arg else None
    if date_arg and day is None:
        return _invalid("date must be in YYYY-MM-DD format")

    try:
        staff = db.session.get(User, staff_id)
        if staff is None or not staff.is_staff:
            return jsonify({"error": "not_found", "message": "Staff not found"}), 404

        query = StaffAvailability.query.filter(StaffAvailability.staff_id == staff_id)
        if day is not None:
            day_start, day_end = day_bounds(day)
            query = query.filter(
                StaffAvailability.start_time < day_end,
                StaffAvailability.end_time > day_start,
            )
        blocks = query.order_by(StaffAvailability.start_time).all()

        return jsonify({"staff_id": staff_id, "availability": [b.to_dict() for b in blocks]}), 200

    except SQLAlchemyError as exc:
        return _database_error("Failed to fetch availability blocks", exc)


@bp.delete("/availability/<int:availability_id>")
def delete_availability_block(availability_id: int) -> tuple[dict[str, object], int]:
    """Remove an availability block. Existing appointments are left untouched.
    ---
    tags:
      - Staff
    responses:
      200:
        description: Deleted
      403:
        description: Only admins or the staff member themself
      404:
        description: Not found
    """
    actor = get_current_actor()
    if actor is None:
        return _unauthorized()

    try:
        block = db.session.get(StaffAvailability, availability_id)
        if block is None:
            return jsonify({"error": "not_found", "message": "Availability block not found"}), 404
        if not _can_manage_availability(actor, block.staff_id):
            return jsonify({"error": "forbidden", "message": "Not allowed to edit this availability"}), 403

        db.session.delete(block)
        db.session.commit()
        return jsonify({"message": "Availability block deleted"}), 200

    except SQLAlchemyError as exc:
        return _database_error("Failed to delete availability block", exc)


# ============================================================================
# Daycare sessions
# ============================================================================

@bp.get("/daycare-sessions")
def list_daycare_sessions_route() -> tuple[dict[str, object], int]:
    """Daycare sessions; owners only see sessions they can still book.
    ---
    tags:
      - Daycare
    responses:
      200:
        description: Sessions ordered by date
    """
    actor = get_current_actor()
    if actor is None:
        return _unauthorized()

    try:
        sessions = list_daycare_sessions(actor)
        return jsonify({"sessions": [session.to_dict() for session in sessions]}), 200

    except SQLAlchemyError as exc:
        return _database_error("Failed to fetch daycare sessions", exc)


@bp.post("/daycare-sessions")
def create_daycare_session_route() -> tuple[dict[str, object], int]:
    """Open a daycare session for a date (admin only).
    ---
    tags:
      - Daycare
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            date:
              type: string
              format: date
            total_capacity:
              type: integer
            price:
              type: number
            status:
              type: string
              enum: [AVAILABLE, FULL, CLOSED]
    responses:
      201:
        description: Created
      400:
        description: Invalid payload
      403:
        description: Admin only
      409:
        description: A session already exists for that date
    """
    actor = get_current_actor()
    if actor is None:
        return _unauthorized()

    payload = request.get_json(silent=True) or {}
    session_date = _parse_day(payload.get("date"))
    total_capacity = _optional_int(payload.get("total_capacity"))
    price = _parse_price(payload.get("price"))
    if session_date is None:
        return _invalid("date must be in YYYY-MM-DD format")
    if total_capacity is None or total_capacity is False:
        return _invalid("total_capacity must be an integer")
    if price is None:
        return _invalid("price must be a number")

    try:
        result = create_daycare_session(
            actor, session_date, total_capacity, price, payload.get("status")
        )
        if isinstance(result, BookingError):
            return result.to_response()
        return jsonify({"session": result.to_dict()}), 201

    except SQLAlchemyError as exc:
        return _database_error("Failed to create daycare session", exc)


@bp.get("/daycare-sessions/<int:session_id>")
def get_daycare_session_route(session_id: int) -> tuple[dict[str, object], int]:
    """Get a daycare session.
    ---
    tags:
      - Daycare
    responses:
      200:
        description: Success
      404:
        description: Not found (or not bookable, for owners)
    """
    actor = get_current_actor()
    if actor is None:
        return _unauthorized()

    try:
        result = get_daycare_session(actor, session_id)
        if isinstance(result, BookingError):
            return result.to_response()
        return jsonify({"session": result.to_dict()}), 200

    except SQLAlchemyError as exc:
        return _database_error("Failed to fetch daycare session", exc)


@bp.patch("/daycare-sessions/<int:session_id>")
def update_daycare_session_route(session_id: int) -> tuple[dict[str, object], int]:
    """Change date, capacity, price or status of a session (admin only).
    ---
    tags:
      - Daycare
    responses:
      200:
        description: Updated
      400:
        description: Invalid payload or capacity below current bookings
      403:
        description: Admin only
      404:
        description: Not found
      409:
        description: Another session already uses the new date
    """
    actor = get_current_actor()
    if actor is None:
        return _unauthorized()

    payload = request.get_json(silent=True) or {}
    changes: dict[str, object] = {}

    if payload.get("new_date") is not None:
        changes["new_date"] = _parse_day(payload["new_date"])
        if changes["new_date"] is None:
            return _invalid("new_date must be in YYYY-MM-DD format")
    if payload.get("total_capacity") is not None:
        changes["total_capacity"] = _optional_int(payload["total_capacity"])
        if changes["total_capacity"] is False:
            return _invalid("total_capacity must be an integer")
    if payload.get("price") is not None:
        changes["price"] = _parse_price(payload["price"])
        if changes["price"] is None:
            return _invalid("price must be a number")
    if payload.get("status") is not None:
        changes["status"] = payload["status"]

    if not changes:
        return _invalid("No valid fields provided for update.")

    try:
        result = update_daycare_session(actor, session_id, changes)
        if isinstance(result, BookingError):
            return result.to_response()
        return jsonify({"session": result.to_dict()}), 200

    except SQLAlchemyError as exc:
        return _database_error("Failed to update daycare session", exc)


@bp.delete("/daycare-sessions/<int:session_id>")
def delete_daycare_session_route(session_id: int) -> tuple[dict[str, object], int]:
    """Delete a session that has no bookings (admin only).
    ---
    tags:
      - Daycare
    responses:
      200:
        description: Deleted
      400:
        description: Session still has bookings
      403:
        description: Admin only
      404:
        description: Not found
    """
    actor = get_current_actor()
    if actor is None:
        return _unauthorized()

    try:
        error = remove_daycare_session(actor, session_id)
        if error is not None:
            return error.to_response()
        return jsonify({"message": "Daycare session deleted"}), 200

    except SQLAlchemyError as exc:
        return _database_error("Failed to delete daycare session", exc)


# ============================================================================
# Daycare bookings
# ============================================================================

@bp.get("/daycare-bookings")
def list_daycare_bookings_route() -> tuple[dict[str, object], int]:
    """Daycare bookings visible to the caller.
    ---
    tags:
      - Daycare
    responses:
      200:
        description: Bookings, newest first
    """
    actor = get_current_actor()
    if actor is None:
        return _unauthorized()

    try:
        bookings = list_daycare_bookings(actor)
        return jsonify({"bookings": [booking.to_dict() for booking in bookings]}), 200

    except SQLAlchemyError as exc:
        return _database_error("Failed to fetch daycare bookings", exc)


@bp.post("/daycare-bookings")
def create_daycare_booking_route() -> tuple[dict[str, object], int]:
    """Book a pet into a daycare session.
    ---
    tags:
      - Daycare
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            session_id:
              type: integer
            pet_id:
              type: integer
            room_id:
              type: integer
    responses:
      201:
        description: Booked
      400:
        description: Invalid payload, or session full or closed
      403:
        description: Pet belongs to someone else
      404:
        description: Session, pet or room not found
      409:
        description: Pet already booked for this session
    """
    actor = get_current_actor()
    if actor is None:
        return _unauthorized()

    payload = request.get_json(silent=True) or {}
    session_id = _optional_int(payload.get("session_id"))
    pet_id = _optional_int(payload.get("pet_id"))
    room_id = _optional_int(payload.get("room_id"))
    if not session_id or not pet_id or room_id is False:
        return _invalid("session_id and pet_id are required and ids must be integers")

    try:
        result = book_daycare_session(actor, session_id, pet_id, room_id)
        if isinstance(result, BookingError):
            return result.to_response()
        return jsonify({"booking": result.to_dict()}), 201

    except SQLAlchemyError as exc:
        return _database_error("Failed to create daycare booking", exc)


@bp.get("/daycare-bookings/<int:booking_id>")
def get_daycare_booking_route(booking_id: int) -> tuple[dict[str, object], int]:
    """Get a daycare booking.
    ---
    tags:
      - Daycare
    responses:
      200:
        description: Success
      403:
        description: Not the caller's booking
      404:
        description: Not found
    """
    actor = get_current_actor()
    if actor is None:
        return _unauthorized()

    try:
        result = get_daycare_booking(actor, booking_id)
        if isinstance(result, BookingError):
            return result.to_response()
        return jsonify({"booking": result.to_dict()}), 200

    except SQLAlchemyError as exc:
        return _database_error("Failed to fetch daycare booking", exc)


@bp.patch("/daycare-bookings/<int:booking_id>")
def update_daycare_booking_route(booking_id: int) -> tuple[dict[str, object], int]:
    """Check in, check out, cancel or move a booking to another room.
    ---
    tags:
      - Daycare
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            status:
              type: string
              enum: [BOOKED, CHECKED_IN, CHECKED_OUT, CANCELLED]
            room_id:
              type: integer
    responses:
      200:
        description: Updated
      400:
        description: Invalid transition, or session full
      403:
        description: Not allowed for the caller's role
      404:
        description: Booking or room not found
      409:
        description: Pet already has another active booking
    """
    actor = get_current_actor()
    if actor is None:
        return _unauthorized()

    payload = request.get_json(silent=True) or {}
    room_id = _optional_int(payload.get("room_id"))
    if room_id is False:
        return _invalid("room_id must be an integer")

    try:
        result = update_daycare_booking(actor, booking_id, payload.get("status"), room_id)
        if isinstance(result, BookingError):
            return result.to_response()
        return jsonify({"booking": result.to_dict()}), 200

    except SQLAlchemyError as exc:
        return _database_error("Failed to update daycare booking", exc)


@bp.delete("/daycare-bookings/<int:booking_id>")
def delete_daycare_booking_route(booking_id: int) -> tuple[dict[str, object], int]:
    """Delete a daycare booking.
    ---
    tags:
      - Daycare
    responses:
      200:
        description: Deleted
      400:
        description: Owners may only delete BOOKED bookings
      403:
        description: Not allowed for the caller's role
      404:
        description: Not found
    """
    actor = get_current_actor()
    if actor is None:
        return _unauthorized()

    try:
        error = remove_daycare_booking(actor, booking_id)
        if error is not None:
            return error.to_response()
        return jsonify({"message": "Daycare booking deleted"}), 200

    except SQLAlchemyError as exc:
        return _database_error("Failed to delete daycare booking", exc)
