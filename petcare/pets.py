"""Pet registry. Owners register and maintain their own pets."""
from __future__ import annotations

from collections.abc import Mapping
from datetime import date

from .auth import Actor
from .errors import BookingError, bad_request, conflict, forbidden, not_found
from .extensions import db
from .models import ActivityLog, Appointment, DaycareBooking, Pet
from .scopes import scope_for, scoped_pets

PET_FIELDS = ("name", "species", "breed", "date_of_birth")


def _owned_pet(actor: Actor, pet_id: int) -> Pet | BookingError:
    pet = db.session.get(Pet, pet_id)
    if pet is None or pet.owner_id != actor.user_id:
        return not_found(f'Pet with ID "{pet_id}" not found for this owner.')
    return pet


def create_pet(
    actor: Actor,
    name: str,
    species: str,
    breed: str | None = None,
    date_of_birth: date | None = None,
) -> Pet | BookingError:
    if not actor.is_owner:
        return forbidden("Only pet owners can register pets.")
    if not name:
        return bad_request("Pet name cannot be empty.")
    if not species:
        return bad_request("Pet species cannot be empty.")
    if date_of_birth is not None and date_of_birth > date.today():
        return bad_request("Date of birth cannot be in the future.")

    pet = Pet(
        owner_id=actor.user_id,
        name=name,
        species=species,
        breed=breed,
        date_of_birth=date_of_birth,
    )
    db.session.add(pet)
    db.session.commit()
    return pet


def list_pets(actor: Actor) -> list[Pet] | BookingError:
    """Owners get their own pets; admins and clinic staff get every pet."""
    if actor.role == "GROOMER":
        return forbidden("You do not have permission to list all pets.")
    return scoped_pets(scope_for(actor)).order_by(Pet.name, Pet.pet_id).all()


def get_pet(actor: Actor, pet_id: int) -> Pet | BookingError:
    pet = db.session.get(Pet, pet_id)
    if pet is None:
        return not_found(f'Pet with ID "{pet_id}" not found.')
    if actor.is_owner and pet.owner_id != actor.user_id:
        return forbidden("You do not have permission to view this pet.")
    return pet


def update_pet(actor: Actor, pet_id: int, changes: Mapping) -> Pet | BookingError:
    if not actor.is_owner:
        return forbidden("Only the pet's owner can update it.")
    pet = _owned_pet(actor, pet_id)
    if isinstance(pet, BookingError):
        return pet

    updates = {key: changes[key] for key in PET_FIELDS if key in changes}
    if not updates:
        return bad_request("No valid fields provided for update.")
    for key in ("name", "species"):
        if key in updates and not updates[key]:
            return bad_request(f"Pet {key} cannot be empty.")
    born = updates.get("date_of_birth")
    if born is not None and born > date.today():
        return bad_request("Date of birth cannot be in the future.")

    for key, value in updates.items():
        setattr(pet, key, value)
    db.session.commit()
    return pet


def remove_pet(actor: Actor, pet_id: int) -> BookingError | None:
    if not actor.is_owner:
        return forbidden("Only the pet's owner can delete it.")
    pet = _owned_pet(actor, pet_id)
    if isinstance(pet, BookingError):
        return pet

    linked = (
        Appointment.query.filter(Appointment.pet_id == pet_id).count()
        + DaycareBooking.query.filter(DaycareBooking.pet_id == pet_id).count()
        + ActivityLog.query.filter(ActivityLog.pet_id == pet_id).count()
    )
    if linked:
        return conflict("Cannot delete a pet with appointments, daycare bookings or activity logs.")

    db.session.delete(pet)
    db.session.commit()
    return None
