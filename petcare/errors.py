"""Result values returned by the booking engine when an operation is refused.

Domain functions hand back either the record they produced or a
``BookingError``; the HTTP layer turns the latter into a JSON error body.
Unexpected persistence failures are not modelled here: they surface as
``SQLAlchemyError`` and are handled at the route boundary.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass

from flask import jsonify


class ErrorKind(enum.Enum):
    NOT_FOUND = ("not_found", 404)
    FORBIDDEN = ("forbidden", 403)
    BAD_REQUEST = ("invalid_payload", 400)
    CONFLICT = ("conflict", 409)
    INTERNAL = ("database_error", 500)

    @property
    def code(self) -> str:
        return self.value[0]

    @property
    def status(self) -> int:
        return self.value[1]


@dataclass(frozen=True)
class BookingError:
    kind: ErrorKind
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"error": self.kind.code, "message": self.message}

    def to_response(self):
        return jsonify(self.to_dict()), self.kind.status


def not_found(message: str) -> BookingError:
    return BookingError(ErrorKind.NOT_FOUND, message)


def forbidden(message: str) -> BookingError:
    return BookingError(ErrorKind.FORBIDDEN, message)


def bad_request(message: str) -> BookingError:
    return BookingError(ErrorKind.BAD_REQUEST, message)


def conflict(message: str) -> BookingError:
    return BookingError(ErrorKind.CONFLICT, message)
