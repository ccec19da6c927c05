#!/usr/bin/env python3
"""Seed a demo clinic: one service, two staff members, an owner with a pet,
next week's availability and a daycare session.

Prints a bearer token per user so the API can be exercised straight away.
"""
import sys
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from pathlib import Path

# Add the parent directory to the path so we can import the app
sys.path.insert(0, str(Path(__file__).parent.parent))

from petcare import create_app
from petcare.auth import build_token
from petcare.extensions import db
from petcare.models import DaycareRoom, DaycareSession, Pet, Service, StaffAvailability, User


def get_or_create_user(email, **fields):
    user = User.query.filter_by(email=email).first()
    if user is None:
        user = User(email=email, **fields)
        db.session.add(user)
        print(f"Created user {email}")
    return user


def seed_demo():
    app = create_app()

    with app.app_context():
        db.create_all()

        checkup = Service.query.filter_by(name="General Checkup").first()
        if checkup is None:
            checkup = Service(
                name="General Checkup",
                description="Routine wellness examination",
                service_type="VETERINARY",
                price=Decimal("50.00"),
                duration_minutes=60,
            )
            db.session.add(checkup)

        grooming = Service.query.filter_by(name="Full Groom").first()
        if grooming is None:
            grooming = Service(
                name="Full Groom",
                description="Bath, haircut and nail trim",
                service_type="GROOMING",
                price=Decimal("65.00"),
                duration_minutes=90,
            )
            db.session.add(grooming)

        admin = get_or_create_user("admin@petcare.local", first_name="Ada", last_name="Admin", role="ADMIN")
        vet = get_or_create_user("vet@petcare.local", first_name="Victor", last_name="Vet", role="CLINIC_STAFF")
        groomer = get_or_create_user("groomer@petcare.local", first_name="Greta", last_name="Groomer", role="GROOMER")
        owner = get_or_create_user("owner@petcare.local", first_name="Olive", last_name="Owner", role="OWNER")

        if checkup not in vet.qualified_services:
            vet.qualified_services.append(checkup)
        if grooming not in groomer.qualified_services:
            groomer.qualified_services.append(grooming)
        db.session.flush()

        if owner.pets.count() == 0:
            db.session.add(Pet(owner_id=owner.user_id, name="Rex", species="Dog", breed="Beagle"))

        # Weekday working hours, 09:00-17:00 UTC, for the next seven days.
        today = date.today()
        for offset in range(1, 8):
            day = today + timedelta(days=offset)
            if day.weekday() >= 5:
                continue
            for staff in (vet, groomer):
                start = datetime.combine(day, time(9, 0))
                exists = StaffAvailability.query.filter_by(staff_id=staff.user_id, start_time=start).first()
                if exists is None:
                    db.session.add(
                        StaffAvailability(
                            staff_id=staff.user_id,
                            start_time=start,
                            end_time=datetime.combine(day, time(17, 0)),
                        )
                    )

        if DaycareRoom.query.count() == 0:
            db.session.add_all([DaycareRoom(name="Small Dogs", capacity=6), DaycareRoom(name="Large Dogs", capacity=4)])

        session_day = today + timedelta(days=1)
        if DaycareSession.query.filter_by(date=session_day).first() is None:
            db.session.add(DaycareSession(date=session_day, total_capacity=10, price=Decimal("35.00")))

        db.session.commit()
        print("Demo data seeded")

        for user in (admin, vet, groomer, owner):
            print(f"{user.role:<13} {user.email:<24} Bearer {build_token(user.user_id)}")


if __name__ == "__main__":
    seed_demo()
