"""Default configuration, overridable through environment variables."""
from __future__ import annotations

import os


class Config:
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///petcare.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-change-me")

    # Bearer tokens older than this are rejected (seconds).
    TOKEN_MAX_AGE = int(os.environ.get("TOKEN_MAX_AGE", 86400))

    # Spacing between candidate start times when searching for free slots.
    SLOT_STEP_MINUTES = int(os.environ.get("SLOT_STEP_MINUTES", 15))

    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*").split(",")
