"""Service catalogue, staff directory and staff qualifications.

Only administrators change any of this; reads are open to every caller.
Password handling is not part of this service, so staff accounts are plain
user rows with a staff role.
"""
from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal

from flask import current_app

from .auth import Actor
from .errors import BookingError, bad_request, conflict, forbidden, not_found
from .extensions import db
from .models import (SERVICE_TYPES, STAFF_ROLES, ActivityLog, Appointment, Service,
                     StaffAvailability, User)
from .status import TERMINAL_STATUSES

SERVICE_FIELDS = ("name", "description", "service_type", "price", "duration_minutes", "is_active")
STAFF_FIELDS = ("email", "first_name", "last_name", "role", "phone")


def _admin_only(actor: Actor, what: str) -> BookingError | None:
    if not actor.is_admin:
        return forbidden(f"Only administrators can manage {what}.")
    return None


def _name_taken(name: str, exclude_service_id: int | None = None) -> bool:
    query = Service.query.filter(Service.name == name)
    if exclude_service_id is not None:
        query = query.filter(Service.service_id != exclude_service_id)
    return query.first() is not None


def _check_service_values(values: Mapping) -> BookingError | None:
    if "name" in values and not values["name"]:
        return bad_request("name cannot be empty")
    for key in ("price", "service_type", "is_active"):
        if key in values and values[key] is None:
            return bad_request(f"{key} cannot be empty")
    if values.get("service_type") is not None and values["service_type"] not in SERVICE_TYPES:
        return bad_request(f"service_type must be one of: {', '.join(SERVICE_TYPES)}")
    if values.get("price") is not None and values["price"] < 0:
        return bad_request("price cannot be negative")
    if values.get("duration_minutes") is not None and values["duration_minutes"] <= 0:
        return bad_request("duration_minutes must be positive")
    return None


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------

def list_services(include_inactive: bool = False) -> list[Service]:
    query = Service.query
    if not include_inactive:
        query = query.filter(Service.is_active.is_(True))
    return query.order_by(Service.name).all()


def get_service(service_id: int) -> Service | BookingError:
    service = db.session.get(Service, service_id)
    if service is None:
        return not_found(f'Service with ID "{service_id}" not found.')
    return service


def create_service(
    actor: Actor,
    name: str,
    price: Decimal,
    service_type: str = "OTHER",
    duration_minutes: int | None = None,
    description: str | None = None,
    is_active: bool = True,
) -> Service | BookingError:
    error = _admin_only(actor, "services")
    if error is not None:
        return error

    values = {
        "name": name,
        "price": price,
        "service_type": service_type,
        "duration_minutes": duration_minutes,
    }
    error = _check_service_values(values)
    if error is not None:
        return error
    if _name_taken(name):
        return conflict(f'Service with name "{name}" already exists.')

    service = Service(
        name=name,
        description=description,
        service_type=service_type,
        price=price,
        duration_minutes=duration_minutes,
        is_active=is_active,
    )
    db.session.add(service)
    db.session.commit()
    current_app.logger.info("Service %s (%s) created", service.service_id, service.name)
    return service


def update_service(actor: Actor, service_id: int, changes: Mapping) -> Service | BookingError:
    """Apply already-parsed ``changes`` (keys from ``SERVICE_FIELDS``)."""
    error = _admin_only(actor, "services")
    if error is not None:
        return error

    service = db.session.get(Service, service_id)
    if service is None:
        return not_found(f'Service with ID "{service_id}" not found.')

    updates = {key: changes[key] for key in SERVICE_FIELDS if key in changes}
    if not updates:
        return bad_request("No valid fields provided for update.")

    error = _check_service_values(updates)
    if error is not None:
        return error
    new_name = updates.get("name")
    if new_name and new_name != service.name and _name_taken(new_name, service.service_id):
        return conflict(f'Service with name "{new_name}" already exists.')

    for key, value in updates.items():
        setattr(service, key, value)
    db.session.commit()
    return service


def remove_service(actor: Actor, service_id: int) -> BookingError | None:
    error = _admin_only(actor, "services")
    if error is not None:
        return error

    service = db.session.get(Service, service_id)
    if service is None:
        return not_found(f'Service with ID "{service_id}" not found.')
    if Appointment.query.filter(Appointment.service_id == service_id).count() > 0:
        return conflict("Cannot delete service because it is linked to existing appointments.")

    service.qualified_staff = []
    db.session.delete(service)
    db.session.commit()
    current_app.logger.info("Service %s deleted", service_id)
    return None


# ---------------------------------------------------------------------------
# Staff
# ---------------------------------------------------------------------------

def _staff_member(staff_id: int) -> User | BookingError:
    staff = db.session.get(User, staff_id)
    if staff is None or not staff.is_staff:
        return not_found(f'Staff member with ID "{staff_id}" not found.')
    return staff


def _email_taken(email: str, exclude_user_id: int | None = None) -> bool:
    query = User.query.filter(User.email == email)
    if exclude_user_id is not None:
        query = query.filter(User.user_id != exclude_user_id)
    return query.first() is not None


def list_staff() -> list[User]:
    return User.query.filter(User.role.in_(STAFF_ROLES)).order_by(User.last_name, User.first_name).all()


def get_staff(staff_id: int) -> User | BookingError:
    return _staff_member(staff_id)


def create_staff(
    actor: Actor,
    email: str,
    first_name: str,
    last_name: str,
    role: str,
    phone: str | None = None,
) -> User | BookingError:
    error = _admin_only(actor, "staff")
    if error is not None:
        return error
    if role not in STAFF_ROLES:
        return bad_request("Only CLINIC_STAFF or GROOMER roles can be created via staff management.")
    if _email_taken(email):
        return conflict("User with this email already exists.")

    staff = User(email=email, first_name=first_name, last_name=last_name, role=role, phone=phone)
    db.session.add(staff)
    db.session.commit()
    return staff


def update_staff(actor: Actor, staff_id: int, changes: Mapping) -> User | BookingError:
    error = _admin_only(actor, "staff")
    if error is not None:
        return error

    staff = _staff_member(staff_id)
    if isinstance(staff, BookingError):
        return staff

    updates = {key: changes[key] for key in STAFF_FIELDS if key in changes}
    if not updates:
        return bad_request("No valid fields provided for update.")
    if "role" in updates and updates["role"] not in STAFF_ROLES:
        return bad_request("Cannot assign non-staff role via this endpoint.")
    for key in ("email", "first_name", "last_name"):
        if key in updates and not updates[key]:
            return bad_request(f"{key} cannot be empty")
    if "email" in updates and _email_taken(updates["email"], staff.user_id):
        return conflict("Email already in use by another user.")

    for key, value in updates.items():
        setattr(staff, key, value)
    db.session.commit()
    return staff


def remove_staff(actor: Actor, staff_id: int) -> BookingError | None:
    """Delete a staff member with no open appointments and no history.

    Their availability blocks and qualifications go with them.
    """
    error = _admin_only(actor, "staff")
    if error is not None:
        return error

    staff = _staff_member(staff_id)
    if isinstance(staff, BookingError):
        return staff

    assigned = Appointment.query.filter(Appointment.staff_id == staff_id)
    if assigned.filter(Appointment.status.notin_(tuple(TERMINAL_STATUSES))).count() > 0:
        return bad_request("Cannot delete staff member with active or pending assigned appointments.")
    if assigned.count() > 0 or ActivityLog.query.filter(ActivityLog.staff_id == staff_id).count() > 0:
        return conflict("Cannot delete staff member with appointment or activity history.")

    StaffAvailability.query.filter(StaffAvailability.staff_id == staff_id).delete()
    staff.qualified_services = []
    db.session.delete(staff)
    db.session.commit()
    current_app.logger.info("Staff member %s deleted", staff_id)
    return None


# ---------------------------------------------------------------------------
# Qualifications
# ---------------------------------------------------------------------------

def add_qualification(actor: Actor, staff_id: int, service_id: int) -> User | BookingError:
    """Allow a staff member to perform a service."""
    error = _admin_only(actor, "staff qualifications")
    if error is not None:
        return error

    staff = _staff_member(staff_id)
    if isinstance(staff, BookingError):
        return staff
    service = db.session.get(Service, service_id)
    if service is None:
        return not_found(f'Service with ID "{service_id}" not found.')
    if service in staff.qualified_services:
        return conflict(f'Staff member "{staff.first_name}" is already qualified for "{service.name}".')

    staff.qualified_services.append(service)
    db.session.commit()
    current_app.logger.info("Staff member %s qualified for service %s", staff_id, service_id)
    return staff


def remove_qualification(actor: Actor, staff_id: int, service_id: int) -> User | BookingError:
    """Withdraw a qualification. Existing appointments are left as booked."""
    error = _admin_only(actor, "staff qualifications")
    if error is not None:
        return error

    staff = _staff_member(staff_id)
    if isinstance(staff, BookingError):
        return staff
    service = db.session.get(Service, service_id)
    if service is None or service not in staff.qualified_services:
        return not_found(f'Staff member "{staff.first_name}" is not qualified for service "{service_id}".')

    staff.qualified_services.remove(service)
    db.session.commit()
    return staff
