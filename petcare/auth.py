"""Resolve the calling user from the Authorization header.

Token issuance and password handling live outside this service; we only verify
signed bearer tokens and look up the caller's role.
"""
from __future__ import annotations

from dataclasses import dataclass

from flask import current_app, request
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from .extensions import db
from .models import STAFF_ROLES, User

TOKEN_SALT = "auth-token"


@dataclass(frozen=True)
class Actor:
    user_id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "ADMIN"

    @property
    def is_owner(self) -> bool:
        return self.role == "OWNER"

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=TOKEN_SALT)


def build_token(user_id: int) -> str:
    return _serializer().dumps({"user_id": user_id})


def get_current_actor() -> Actor | None:
    """Return the authenticated actor, or None if the token is missing or invalid."""
    auth_header = request.headers.get("Authorization", "")

    if not auth_header.startswith("Bearer "):
        return None

    token = auth_header[7:]  # Remove "Bearer " prefix

    try:
        payload = _serializer().loads(token, max_age=current_app.config["TOKEN_MAX_AGE"])
    except SignatureExpired:
        current_app.logger.info("Rejected expired bearer token")
        return None
    except BadSignature:
        return None

    user_id = payload.get("user_id") if isinstance(payload, dict) else None
    if user_id is None:
        return None

    user = db.session.get(User, user_id)
    if user is None:
        return None
    return Actor(user_id=user.user_id, role=user.role)
