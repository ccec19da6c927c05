"""pytest configuration for path management and shared fixtures."""
from __future__ import annotations

import sys
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from types import SimpleNamespace

import pytest

# Ensure the project root is available on sys.path so tests can import the app package.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from petcare import create_app  # noqa: E402
from petcare.auth import build_token  # noqa: E402
from petcare.extensions import db  # noqa: E402
from petcare.models import Pet, Service, StaffAvailability, User  # noqa: E402

# Fixed weekday used by scheduling tests; all times are UTC.
DAY = date(2030, 6, 3)


def at(hour: int, minute: int = 0, day: date = DAY) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute)


@pytest.fixture
def app():
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
        "SECRET_KEY": "test-secret",
        "SLOT_STEP_MINUTES": 15,
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_header(app):
    def _header(user_id: int) -> dict[str, str]:
        return {"Authorization": f"Bearer {build_token(user_id)}"}
    return _header


@pytest.fixture
def clinic(app):
    """Owners, an admin, two staff members, a 60 minute checkup and a pet."""
    owner = User(user_id=1, first_name="Olive", last_name="Owner", email="olive@example.com", role="OWNER")
    other_owner = User(user_id=2, first_name="Oscar", last_name="Other", email="oscar@example.com", role="OWNER")
    admin = User(user_id=3, first_name="Ada", last_name="Admin", email="ada@example.com", role="ADMIN")
    vet = User(user_id=10, first_name="Victor", last_name="Vet", email="victor@example.com", role="CLINIC_STAFF")
    groomer = User(user_id=11, first_name="Greta", last_name="Groomer", email="greta@example.com", role="GROOMER")

    checkup = Service(
        service_id=1,
        name="General Checkup",
        service_type="VETERINARY",
        price=Decimal("50.00"),
        duration_minutes=60,
    )
    vet.qualified_services.append(checkup)

    rex = Pet(pet_id=1, owner_id=1, name="Rex", species="Dog")
    milo = Pet(pet_id=2, owner_id=2, name="Milo", species="Cat")

    db.session.add_all([owner, other_owner, admin, vet, groomer, checkup, rex, milo])
    db.session.commit()

    return SimpleNamespace(
        owner_id=1,
        other_owner_id=2,
        admin_id=3,
        vet_id=10,
        groomer_id=11,
        service_id=1,
        pet_id=1,
        other_pet_id=2,
    )


def add_block(staff_id: int, start: datetime, end: datetime) -> int:
    block = StaffAvailability(staff_id=staff_id, start_time=start, end_time=end)
    db.session.add(block)
    db.session.commit()
    return block.availability_id
