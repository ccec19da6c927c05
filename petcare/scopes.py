"""Record visibility per role, expressed as explicit query scopes."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from .auth import Actor
from .models import ActivityLog, Appointment, DaycareBooking, DaycareSession, Pet


@dataclass(frozen=True)
class AllRecords:
    pass


@dataclass(frozen=True)
class OwnedByUser:
    user_id: int


ScopedQuery = Union[AllRecords, OwnedByUser]


def scope_for(actor: Actor) -> ScopedQuery:
    """Owners only see their own records; admins and staff see everything."""
    if actor.role == "OWNER":
        return OwnedByUser(actor.user_id)
    return AllRecords()


def scoped_appointments(scope: ScopedQuery):
    query = Appointment.query
    if isinstance(scope, OwnedByUser):
        query = query.filter(Appointment.owner_id == scope.user_id)
    return query


def scoped_daycare_bookings(scope: ScopedQuery):
    query = DaycareBooking.query
    if isinstance(scope, OwnedByUser):
        query = query.join(Pet, DaycareBooking.pet_id == Pet.pet_id).filter(
            Pet.owner_id == scope.user_id
        )
    return query


def scoped_daycare_sessions(scope: ScopedQuery):
    """Owners are only shown sessions they could still book."""
    query = DaycareSession.query
    if isinstance(scope, OwnedByUser):
        query = query.filter(
            DaycareSession.status != "CLOSED",
            DaycareSession.total_capacity > 0,
            DaycareSession.current_bookings < DaycareSession.total_capacity,
        )
    return query


def scoped_pets(scope: ScopedQuery):
    query = Pet.query
    if isinstance(scope, OwnedByUser):
        query = query.filter(Pet.owner_id == scope.user_id)
    return query


def scoped_activity_logs(scope: ScopedQuery):
    query = ActivityLog.query
    if isinstance(scope, OwnedByUser):
        query = query.join(Pet, ActivityLog.pet_id == Pet.pet_id).filter(
            Pet.owner_id == scope.user_id
        )
    return query
