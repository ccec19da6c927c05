"""Appointment status transitions and who may trigger them."""
from __future__ import annotations

from .errors import BookingError, bad_request, forbidden
from .models import APPOINTMENT_STATUSES

TERMINAL_STATUSES = frozenset({"COMPLETED", "CANCELLED", "NO_SHOW"})
OWNER_TARGETS = frozenset({"CANCELLED"})


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def check_transition(role: str, current: str, target: str) -> BookingError | None:
    """Return None when ``role`` may move an appointment from ``current`` to ``target``.

    Re-applying the current status is always accepted and changes nothing, so
    cancelling twice is harmless. Terminal appointments cannot move again.
    Owners may only cancel; admins and staff may pick any status.
    """
    if target not in APPOINTMENT_STATUSES:
        return bad_request(f"status must be one of: {', '.join(APPOINTMENT_STATUSES)}")

    if target == current:
        return None

    if role == "OWNER" and target not in OWNER_TARGETS:
        return forbidden("Owners can only update status to CANCELLED.")

    if is_terminal(current):
        return bad_request(f"Cannot change status of a {current.lower()} appointment")

    return None
