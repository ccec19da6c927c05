"""Flask extension instances, created unbound and attached in ``create_app``."""
from __future__ import annotations

from flask_sqlalchemy import SQLAlchemy

# One session per request; the booking and daycare modules commit through it.
db = SQLAlchemy()
