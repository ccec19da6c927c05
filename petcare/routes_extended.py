"""Routes for the service catalogue, staff directory, pets and activity logs."""
from __future__ import annotations

from flask import Blueprint, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from .activity_logs import (create_activity_log, get_activity_log, list_activity_logs,
                            remove_activity_log, update_activity_log)
from .auth import get_current_actor
from .catalog import (add_qualification, create_service, create_staff, get_service,
                      get_staff, list_services, list_staff, remove_qualification,
                      remove_service, remove_staff, update_service, update_staff)
from .errors import BookingError
from .pets import create_pet, get_pet, list_pets, remove_pet, update_pet
from .routes import (_database_error, _invalid, _optional_int, _parse_day, _parse_price,
                     _unauthorized)

bp_ext = Blueprint("api_ext", __name__)


def _optional_text(value: object) -> str | None | bool:
    """Strip an optional string; returns False when the value is not a string."""
    if value is None:
        return None
    if not isinstance(value, str):
        return False
    return value.strip()


def _parse_fields(payload: dict, parsers: dict) -> tuple[dict[str, object], str | None]:
    """Run each present key through its parser; a False or None result is an error.

    Returns the parsed values and the first offending key, if any.
    """
    parsed: dict[str, object] = {}
    for key, parse in parsers.items():
        if key not in payload:
            continue
        value = parse(payload[key])
        if value is False or (value is None and payload[key] is not None):
            return parsed, key
        parsed[key] = value
    return parsed, None


def _parse_flag(value: object) -> bool | None:
    return value if isinstance(value, bool) else None


def _parse_upper(value: object) -> str | None | bool:
    text = _optional_text(value)
    return text.upper() if isinstance(text, str) else text


def _parse_email(value: object) -> str | None | bool:
    text = _optional_text(value)
    return text.lower() if isinstance(text, str) else text


SERVICE_PARSERS = {
    "name": _optional_text,
    "description": _optional_text,
    "service_type": _parse_upper,
    "price": _parse_price,
    "duration_minutes": _optional_int,
    "is_active": _parse_flag,
}

STAFF_PARSERS = {
    "email": _parse_email,
    "first_name": _optional_text,
    "last_name": _optional_text,
    "role": _parse_upper,
    "phone": _optional_text,
}

PET_PARSERS = {
    "name": _optional_text,
    "species": _optional_text,
    "breed": _optional_text,
    "date_of_birth": _parse_day,
}

LOG_PARSERS = {
    "pet_id": _optional_int,
    "activity_type": _parse_upper,
    "details": _optional_text,
    "daycare_booking_id": _optional_int,
    "appointment_id": _optional_int,
}


# ============================================================================
# Services
# ============================================================================

@bp_ext.get("/services")
def list_services_route() -> tuple[dict[str, object], int]:
    """List active services.
    ---
    tags:
      - Services
    responses:
      200:
        description: Active services ordered by name
    """
    try:
        services = list_services()
        return jsonify({"services": [service.to_dict() for service in services]}), 200

    except SQLAlchemyError as exc:
        return _database_error("Failed to fetch services", exc)


@bp_ext.get("/services/<int:service_id>")
def get_service_route(service_id: int) -> tuple[dict[str, object], int]:
    """Get a service by id.
    ---
    tags:
      - Services
    responses:
      200:
        description: Success
      404:
        description: Service not found
    """
    try:
        result = get_service(service_id)
        if isinstance(result, BookingError):
            return result.to_response()
        return jsonify({"service": result.to_dict()}), 200

    except SQLAlchemyError as exc:
        return _database_error("Failed to fetch service", exc)


@bp_ext.post("/services")
def create_service_route() -> tuple[dict[str, object], int]:
    """Add a service to the catalogue (admin only).
    ---
    tags:
      - Services
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            name:
              type: string
            description:
              type: string
            service_type:
              type: string
              enum: [VETERINARY, GROOMING, DAYCARE, OTHER]
            price:
              type: number
            duration_minutes:
              type: integer
            is_active:
              type: boolean
          required:
            - name
            - price
    responses:
      201:
        description: Service created
      400:
        description: Invalid payload
      403:
        description: Admin only
      409:
        description: A service with this name already exists
    """
    actor = get_current_actor()
    if actor is None:
        return _unauthorized()

    payload = request.get_json(silent=True) or {}
    values, bad_key = _parse_fields(payload, SERVICE_PARSERS)
    if bad_key is not None:
        return _invalid(f"{bad_key} has an invalid value")
    if not values.get("name") or values.get("price") is None:
        return _invalid("name and price are required")

    try:
        result = create_service(
            actor,
            values["name"],
            values["price"],
            service_type=values.get("service_type") or "OTHER",
            duration_minutes=values.get("duration_minutes"),
            description=values.get("description") or None,
            is_active=values.get("is_active", True),
        )
        if isinstance(result, BookingError):
            return result.to_response()
        return jsonify({"service": result.to_dict()}), 201

    except SQLAlchemyError as exc:
        return _database_error("Failed to create service", exc)


@bp_ext.patch("/services/<int:service_id>")
def update_service_route(service_id: int) -> tuple[dict[str, object], int]:
    """Update a service (admin only).
    ---
    tags:
      - Services
    responses:
      200:
        description: Service updated
      400:
        description: Invalid payload
      403:
        description: Admin only
      404:
        description: Service not found
      409:
        description: Another service already uses the new name
    """
    actor = get_current_actor()
    if actor is None:
        return _unauthorized()

    payload = request.get_json(silent=True) or {}
    changes, bad_key = _parse_fields(payload, SERVICE_PARSERS)
    if bad_key is not None:
        return _invalid(f"{bad_key} has an invalid value")

    try:
        result = update_service(actor, service_id, changes)
        if isinstance(result, BookingError):
            return result.to_response()
        return jsonify({"service": result.to_dict()}), 200

    except SQLAlchemyError as exc:
        return _database_error("Failed to update service", exc)


@bp_ext.delete("/services/<int:service_id>")
def delete_service_route(service_id: int) -> tuple[dict[str, object], int]:
    """Delete a service that no appointment refers to (admin only).
    ---
    tags:
      - Services
    responses:
      200:
        description: Deleted
      403:
        description: Admin only
      404:
        description: Service not found
      409:
        description: Service is linked to appointments
    """
    actor = get_current_actor()
    if actor is None:
        return _unauthorized()

    try:
        error = remove_service(actor, service_id)
        if error is not None:
            return error.to_response()
        return jsonify({"message": "Service deleted"}), 200

    except SQLAlchemyError as exc:
        return _database_error("Failed to delete service", exc)


@bp_ext.get("/services/<int:service_id>/staff")
def list_qualified_staff(service_id: int) -> tuple[dict[str, object], int]:
    """Staff members qualified to perform a service.
    ---
    tags:
      - Services
    responses:
      200:
        description: Qualified staff
      404:
        description: Service not found
    """
    try:
        service = get_service(service_id)
        if isinstance(service, BookingError):
            return service.to_response()

        staff = [member for member in service.qualified_staff if member.is_staff]
        return jsonify({"staff": [member.to_dict_basic() for member in staff]}), 200

    except SQLAlchemyError as exc:
        return _database_error("Failed to fetch qualified staff", exc)


# ============================================================================
# Staff directory and qualifications
# ============================================================================

@bp_ext.get("/staff")
def list_staff_route() -> tuple[dict[str, object], int]:
    """List clinic staff and groomers with their qualifications.
    ---
    tags:
      - Staff
    responses:
      200:
        description: Staff members
    """
    try:
        return jsonify({"staff": [member.to_staff_dict() for member in list_staff()]}), 200

    except SQLAlchemyError as exc:
        return _database_error("Failed to fetch staff", exc)


@bp_ext.get("/staff/<int:staff_id>")
def get_staff_route(staff_id: int) -> tuple[dict[str, object], int]:
    """Get one staff member.
    ---
    tags:
      - Staff
    responses:
      200:
        description: Success
      404:
        description: Staff member not found
    """
    try:
        result = get_staff(staff_id)
        if isinstance(result, BookingError):
            return result.to_response()
        return jsonify({"staff": result.to_staff_dict()}), 200

    except SQLAlchemyError as exc:
        return _database_error("Failed to fetch staff member", exc)


@bp_ext.post("/staff")
def create_staff_route() -> tuple[dict[str, object], int]:
    """Add a clinic staff member or groomer (admin only).
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
            email:
              type: string
            first_name:
              type: string
            last_name:
              type: string
            role:
              type: string
              enum: [CLINIC_STAFF, GROOMER]
            phone:
              type: string
          required:
            - email
            - first_name
            - last_name
            - role
    responses:
      201:
        description: Staff member created
      400:
        description: Invalid payload or non-staff role
      403:
        description: Admin only
      409:
        description: Email already in use
    """
    actor = get_current_actor()
    if actor is None:
        return _unauthorized()

    payload = request.get_json(silent=True) or {}
    values, bad_key = _parse_fields(payload, STAFF_PARSERS)
    if bad_key is not None:
        return _invalid(f"{bad_key} has an invalid value")
    if not all(values.get(key) for key in ("email", "first_name", "last_name", "role")):
        return _invalid("email, first_name, last_name, and role are required")

    try:
        result = create_staff(
            actor,
            values["email"],
            values["first_name"],
            values["last_name"],
            values["role"],
            phone=values.get("phone") or None,
        )
        if isinstance(result, BookingError):
            return result.to_response()
        return jsonify({"staff": result.to_staff_dict()}), 201

    except SQLAlchemyError as exc:
        return _database_error("Failed to create staff member", exc)


@bp_ext.patch("/staff/<int:staff_id>")
def update_staff_route(staff_id: int) -> tuple[dict[str, object], int]:
    """Update a staff member's details or role (admin only).
    ---
    tags:
      - Staff
    responses:
      200:
        description: Updated
      400:
        description: Invalid payload or non-staff role
      403:
        description: Admin only
      404:
        description: Staff member not found
      409:
        description: Email already in use
    """
    actor = get_current_actor()
    if actor is None:
        return _unauthorized()

    payload = request.get_json(silent=True) or {}
    changes, bad_key = _parse_fields(payload, STAFF_PARSERS)
    if bad_key is not None:
        return _invalid(f"{bad_key} has an invalid value")

    try:
        result = update_staff(actor, staff_id, changes)
        if isinstance(result, BookingError):
            return result.to_response()
        return jsonify({"staff": result.to_staff_dict()}), 200

    except SQLAlchemyError as exc:
        return _database_error("Failed to update staff member", exc)


@bp_ext.delete("/staff/<int:staff_id>")
def delete_staff_route(staff_id: int) -> tuple[dict[str, object], int]:
    """Delete a staff member without open appointments (admin only).
    ---
    tags:
      - Staff
    responses:
      200:
        description: Deleted
      400:
        description: Staff member still has open appointments
      403:
        description: Admin only
      404:
        description: Staff member not found
      409:
        description: Staff member has appointment or activity history
    """
    actor = get_current_actor()
    if actor is None:
        return _unauthorized()

    try:
        error = remove_staff(actor, staff_id)
        if error is not None:
            return error.to_response()
        return jsonify({"message": "Staff member deleted"}), 200

    except SQLAlchemyError as exc:
        return _database_error("Failed to delete staff member", exc)


@bp_ext.post("/staff/<int:staff_id>/services")
def add_qualification_route(staff_id: int) -> tuple[dict[str, object], int]:
    """Qualify a staff member for a service (admin only).
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
            service_id:
              type: integer
    responses:
      201:
        description: Qualification added
      403:
        description: Admin only
      404:
        description: Staff member or service not found
      409:
        description: Already qualified
    """
    actor = get_current_actor()
    if actor is None:
        return _unauthorized()

    payload = request.get_json(silent=True) or {}
    service_id = _optional_int(payload.get("service_id"))
    if not service_id:
        return _invalid("service_id is required and must be an integer")

    try:
        result = add_qualification(actor, staff_id, service_id)
        if isinstance(result, BookingError):
            return result.to_response()
        return jsonify({"staff": result.to_staff_dict()}), 201

    except SQLAlchemyError as exc:
        return _database_error("Failed to add staff qualification", exc)


@bp_ext.delete("/staff/<int:staff_id>/services/<int:service_id>")
def remove_qualification_route(staff_id: int, service_id: int) -> tuple[dict[str, object], int]:
    """Withdraw a staff member's qualification for a service (admin only).
    ---
    tags:
      - Staff
    responses:
      200:
        description: Qualification removed
      403:
        description: Admin only
      404:
        description: Staff member not found or not qualified
    """
    actor = get_current_actor()
    if actor is None:
        return _unauthorized()

    try:
        result = remove_qualification(actor, staff_id, service_id)
        if isinstance(result, BookingError):
            return result.to_response()
        return jsonify({"staff": result.to_staff_dict()}), 200

    except SQLAlchemyError as exc:
        return _database_error("Failed to remove staff qualification", exc)


# ============================================================================
# Pets
# ============================================================================

@bp_ext.get("/pets")
def list_pets_route() -> tuple[dict[str, object], int]:
    """Owners see their own pets; admins and clinic staff see all.
    ---
    tags:
      - Pets
    responses:
      200:
        description: Pets
      403:
        description: Groomers cannot list pets
    """
    actor = get_current_actor()
    if actor is None:
        return _unauthorized()

    try:
        result = list_pets(actor)
        if isinstance(result, BookingError):
            return result.to_response()
        return jsonify({"pets": [pet.to_dict() for pet in result]}), 200

    except SQLAlchemyError as exc:
        return _database_error("Failed to fetch pets", exc)


@bp_ext.post("/pets")
def create_pet_route() -> tuple[dict[str, object], int]:
    """Register a pet for the calling owner.
    ---
    tags:
      - Pets
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            name:
              type: string
            species:
              type: string
            breed:
              type: string
            date_of_birth:
              type: string
              format: date
          required:
            - name
            - species
    responses:
      201:
        description: Pet registered
      400:
        description: Invalid payload
      403:
        description: Owners only
    """
    actor = get_current_actor()
    if actor is None:
        return _unauthorized()

    payload = request.get_json(silent=True) or {}
    values, bad_key = _parse_fields(payload, PET_PARSERS)
    if bad_key is not None:
        return _invalid(f"{bad_key} has an invalid value")
    if not values.get("name") or not values.get("species"):
        return _invalid("name and species are required")

    try:
        result = create_pet(
            actor,
            values["name"],
            values["species"],
            breed=values.get("breed") or None,
            date_of_birth=values.get("date_of_birth"),
        )
        if isinstance(result, BookingError):
            return result.to_response()
        return jsonify({"pet": result.to_dict()}), 201

    except SQLAlchemyError as exc:
        return _database_error("Failed to create pet", exc)


@bp_ext.get("/pets/<int:pet_id>")
def get_pet_route(pet_id: int) -> tuple[dict[str, object], int]:
    """Get a pet.
    ---
    tags:
      - Pets
    responses:
      200:
        description: Success
      403:
        description: Not the caller's pet
      404:
        description: Pet not found
    """
    actor = get_current_actor()
    if actor is None:
        return _unauthorized()

    try:
        result = get_pet(actor, pet_id)
        if isinstance(result, BookingError):
            return result.to_response()
        return jsonify({"pet": result.to_dict()}), 200

    except SQLAlchemyError as exc:
        return _database_error("Failed to fetch pet", exc)


@bp_ext.patch("/pets/<int:pet_id>")
def update_pet_route(pet_id: int) -> tuple[dict[str, object], int]:
    """Update one of the caller's pets.
    ---
    tags:
      - Pets
    responses:
      200:
        description: Updated
      400:
        description: Invalid payload
      403:
        description: Owners only
      404:
        description: Pet not found for this owner
    """
    actor = get_current_actor()
    if actor is None:
        return _unauthorized()

    payload = request.get_json(silent=True) or {}
    changes, bad_key = _parse_fields(payload, PET_PARSERS)
    if bad_key is not None:
        return _invalid(f"{bad_key} has an invalid value")

    try:
        result = update_pet(actor, pet_id, changes)
        if isinstance(result, BookingError):
            return result.to_response()
        return jsonify({"pet": result.to_dict()}), 200

    except SQLAlchemyError as exc:
        return _database_error("Failed to update pet", exc)


@bp_ext.delete("/pets/<int:pet_id>")
def delete_pet_route(pet_id: int) -> tuple[dict[str, object], int]:
    """Delete one of the caller's pets that has no history.
    ---
    tags:
      - Pets
    responses:
      200:
        description: Deleted
      403:
        description: Owners only
      404:
        description: Pet not found for this owner
      409:
        description: Pet has appointments, bookings or logs
    """
    actor = get_current_actor()
    if actor is None:
        return _unauthorized()

    try:
        error = remove_pet(actor, pet_id)
        if error is not None:
            return error.to_response()
        return jsonify({"message": "Pet deleted"}), 200

    except SQLAlchemyError as exc:
        return _database_error("Failed to delete pet", exc)


# ============================================================================
# Activity logs
# ============================================================================

@bp_ext.get("/activity-logs")
def list_activity_logs_route() -> tuple[dict[str, object], int]:
    """Activity logs, newest first. Owners only see logs about their pets.
    ---
    tags:
      - Activity logs
    parameters:
      - name: pet_id
        in: query
        type: integer
      - name: daycare_booking_id
        in: query
        type: integer
      - name: appointment_id
        in: query
        type: integer
    responses:
      200:
        description: Activity logs
      400:
        description: Non-integer filter
    """
    actor = get_current_actor()
    if actor is None:
        return _unauthorized()

    filters = {
        key: _optional_int(request.args.get(key))
        for key in ("pet_id", "daycare_booking_id", "appointment_id")
    }
    if any(value is False for value in filters.values()):
        return _invalid("Filters must be integers")

    try:
        logs = list_activity_logs(actor, **filters)
        return jsonify({"activity_logs": [log.to_dict() for log in logs]}), 200

    except SQLAlchemyError as exc:
        return _database_error("Failed to fetch activity logs", exc)


@bp_ext.post("/activity-logs")
def create_activity_log_route() -> tuple[dict[str, object], int]:
    """Record an activity for a pet (staff and admins).
    ---
    tags:
      - Activity logs
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            pet_id:
              type: integer
            activity_type:
              type: string
              enum: [FEEDING, WALKING, PLAYTIME, MEDICATION, GROOMING, EXAMINATION, OTHER]
            details:
              type: string
              maxLength: 500
            daycare_booking_id:
              type: integer
            appointment_id:
              type: integer
          required:
            - pet_id
            - activity_type
            - details
    responses:
      201:
        description: Logged
      400:
        description: Invalid payload, or linked to both a booking and an appointment
      403:
        description: Owners cannot write logs
      404:
        description: Pet, booking or appointment not found
    """
    actor = get_current_actor()
    if actor is None:
        return _unauthorized()

    payload = request.get_json(silent=True) or {}
    values, bad_key = _parse_fields(payload, LOG_PARSERS)
    if bad_key is not None:
        return _invalid(f"{bad_key} has an invalid value")
    if not values.get("pet_id") or not values.get("activity_type") or not values.get("details"):
        return _invalid("pet_id, activity_type, and details are required")

    try:
        result = create_activity_log(
            actor,
            values["pet_id"],
            values["activity_type"],
            values["details"],
            daycare_booking_id=values.get("daycare_booking_id"),
            appointment_id=values.get("appointment_id"),
        )
        if isinstance(result, BookingError):
            return result.to_response()
        return jsonify({"activity_log": result.to_dict()}), 201

    except SQLAlchemyError as exc:
        return _database_error("Failed to create activity log", exc)


@bp_ext.get("/activity-logs/<int:log_id>")
def get_activity_log_route(log_id: int) -> tuple[dict[str, object], int]:
    """Get an activity log.
    ---
    tags:
      - Activity logs
    responses:
      200:
        description: Success
      403:
        description: Not about the caller's pet
      404:
        description: Not found
    """
    actor = get_current_actor()
    if actor is None:
        return _unauthorized()

    try:
        result = get_activity_log(actor, log_id)
        if isinstance(result, BookingError):
            return result.to_response()
        return jsonify({"activity_log": result.to_dict()}), 200

    except SQLAlchemyError as exc:
        return _database_error("Failed to fetch activity log", exc)


@bp_ext.patch("/activity-logs/<int:log_id>")
def update_activity_log_route(log_id: int) -> tuple[dict[str, object], int]:
    """Correct an activity log (staff and admins).
    ---
    tags:
      - Activity logs
    responses:
      200:
        description: Updated
      400:
        description: Invalid payload or mismatched links
      403:
        description: Owners cannot edit logs
      404:
        description: Not found
    """
    actor = get_current_actor()
    if actor is None:
        return _unauthorized()

    payload = request.get_json(silent=True) or {}
    changes, bad_key = _parse_fields(payload, LOG_PARSERS)
    if bad_key is not None:
        return _invalid(f"{bad_key} has an invalid value")

    try:
        result = update_activity_log(actor, log_id, changes)
        if isinstance(result, BookingError):
            return result.to_response()
        return jsonify({"activity_log": result.to_dict()}), 200

    except SQLAlchemyError as exc:
        return _database_error("Failed to update activity log", exc)


@bp_ext.delete("/activity-logs/<int:log_id>")
def delete_activity_log_route(log_id: int) -> tuple[dict[str, object], int]:
    """Delete an activity log (admin only).
    ---
    tags:
      - Activity logs
    responses:
      200:
        description: Deleted
      403:
        description: Admin only
      404:
        description: Not found
    """
    actor = get_current_actor()
    if actor is None:
        return _unauthorized()

    try:
        error = remove_activity_log(actor, log_id)
        if error is not None:
            return error.to_response()
        return jsonify({"message": "Activity log deleted"}), 200

    except SQLAlchemyError as exc:
        return _database_error("Failed to delete activity log", exc)
