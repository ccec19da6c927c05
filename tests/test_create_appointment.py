"""Tests for POST /appointments and the booking checks behind it."""
from __future__ import annotations

from conftest import DAY, add_block, at
from petcare.extensions import db
from petcare.models import Appointment, Service


def _payload(clinic, starts_at="2030-06-03T10:00:00Z", **overrides):
    payload = {
        "pet_id": clinic.pet_id,
        "service_id": clinic.service_id,
        "staff_id": clinic.vet_id,
        "starts_at": starts_at,
    }
    payload.update(overrides)
    return payload


def test_create_appointment_success_201(client, clinic, auth_header):
    add_block(clinic.vet_id, at(9), at(17))

    response = client.post(
        "/appointments",
        json=_payload(clinic, notes="  first visit "),
        headers=auth_header(clinic.owner_id),
    )
    data = response.get_json()

    assert response.status_code == 201
    assert data["message"] == "Appointment created successfully"
    assert data["appointment"]["status"] == "SCHEDULED"
    assert data["appointment"]["owner_id"] == clinic.owner_id
    assert data["appointment"]["starts_at"] == "2030-06-03T10:00:00Z"
    assert data["appointment"]["ends_at"] == "2030-06-03T11:00:00Z"
    assert data["appointment"]["notes"] == "first visit"


def test_offset_timestamps_are_stored_as_utc(client, clinic, auth_header):
    add_block(clinic.vet_id, at(9), at(17))

    response = client.post(
        "/appointments",
        json=_payload(clinic, starts_at="2030-06-03T12:00:00+02:00"),
        headers=auth_header(clinic.owner_id),
    )

    assert response.status_code == 201
    assert response.get_json()["appointment"]["starts_at"] == "2030-06-03T10:00:00Z"


def test_missing_token_401(client, clinic):
    response = client.post("/appointments", json=_payload(clinic))

    assert response.status_code == 401
    assert response.get_json()["error"] == "unauthorized"


def test_invalid_token_401(client, clinic):
    response = client.post(
        "/appointments",
        json=_payload(clinic),
        headers={"Authorization": "Bearer not-a-token"},
    )

    assert response.status_code == 401


def test_missing_fields_400(client, clinic, auth_header):
    response = client.post(
        "/appointments",
        json={"pet_id": clinic.pet_id},
        headers=auth_header(clinic.owner_id),
    )

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_payload"


def test_malformed_starts_at_400(client, clinic, auth_header):
    response = client.post(
        "/appointments",
        json=_payload(clinic, starts_at="tomorrow at ten"),
        headers=auth_header(clinic.owner_id),
    )

    assert response.status_code == 400
    assert "ISO8601" in response.get_json()["message"]


def test_no_covering_block_409(client, clinic, auth_header):
    add_block(clinic.vet_id, at(10), at(12))

    response = client.post(
        "/appointments",
        json=_payload(clinic, starts_at="2030-06-03T11:30:00Z"),
        headers=auth_header(clinic.owner_id),
    )
    data = response.get_json()

    assert response.status_code == 409
    assert data["error"] == "conflict"
    assert "not available" in data["message"]


def test_overlapping_booking_409(client, clinic, auth_header):
    add_block(clinic.vet_id, at(9), at(17))
    first = client.post("/appointments", json=_payload(clinic), headers=auth_header(clinic.owner_id))
    assert first.status_code == 201

    response = client.post(
        "/appointments",
        json=_payload(clinic, starts_at="2030-06-03T10:30:00Z", pet_id=clinic.other_pet_id),
        headers=auth_header(clinic.other_owner_id),
    )
    data = response.get_json()

    assert response.status_code == 409
    assert "conflicting appointment" in data["message"]
    assert Appointment.query.count() == 1


def test_back_to_back_bookings_are_allowed(client, clinic, auth_header):
    add_block(clinic.vet_id, at(9), at(17))

    first = client.post("/appointments", json=_payload(clinic), headers=auth_header(clinic.owner_id))
    second = client.post(
        "/appointments",
        json=_payload(clinic, starts_at="2030-06-03T11:00:00Z"),
        headers=auth_header(clinic.owner_id),
    )

    assert first.status_code == 201
    assert second.status_code == 201


def test_cancelled_slot_can_be_booked_again(client, clinic, auth_header):
    add_block(clinic.vet_id, at(9), at(17))
    first = client.post("/appointments", json=_payload(clinic), headers=auth_header(clinic.owner_id))
    appointment_id = first.get_json()["appointment"]["id"]
    client.delete(f"/appointments/{appointment_id}", headers=auth_header(clinic.owner_id))

    response = client.post(
        "/appointments",
        json=_payload(clinic, pet_id=clinic.other_pet_id),
        headers=auth_header(clinic.other_owner_id),
    )

    assert response.status_code == 201


def test_someone_elses_pet_403(client, clinic, auth_header):
    add_block(clinic.vet_id, at(9), at(17))

    response = client.post(
        "/appointments",
        json=_payload(clinic, pet_id=clinic.other_pet_id),
        headers=auth_header(clinic.owner_id),
    )

    assert response.status_code == 403
    assert response.get_json()["error"] == "forbidden"


def test_admin_books_on_behalf_of_owner(client, clinic, auth_header):
    add_block(clinic.vet_id, at(9), at(17))

    response = client.post(
        "/appointments",
        json=_payload(clinic, pet_id=clinic.other_pet_id),
        headers=auth_header(clinic.admin_id),
    )

    assert response.status_code == 201
    assert response.get_json()["appointment"]["owner_id"] == clinic.other_owner_id


def test_unknown_pet_404(client, clinic, auth_header):
    response = client.post(
        "/appointments",
        json=_payload(clinic, pet_id=999),
        headers=auth_header(clinic.owner_id),
    )

    assert response.status_code == 404


def test_inactive_service_404(client, clinic, auth_header):
    db.session.get(Service, clinic.service_id).is_active = False
    db.session.commit()

    response = client.post("/appointments", json=_payload(clinic), headers=auth_header(clinic.owner_id))

    assert response.status_code == 404


def test_staff_id_that_is_not_staff_404(client, clinic, auth_header):
    response = client.post(
        "/appointments",
        json=_payload(clinic, staff_id=clinic.other_owner_id),
        headers=auth_header(clinic.owner_id),
    )

    assert response.status_code == 404
    assert "not valid staff" in response.get_json()["message"]


def test_unqualified_staff_400(client, clinic, auth_header):
    add_block(clinic.groomer_id, at(9), at(17))

    response = client.post(
        "/appointments",
        json=_payload(clinic, staff_id=clinic.groomer_id),
        headers=auth_header(clinic.owner_id),
    )

    assert response.status_code == 400
    assert "not qualified" in response.get_json()["message"]


def test_every_offered_slot_can_be_booked(client, clinic, auth_header):
    add_block(clinic.vet_id, at(9), at(13))
    db.session.add(
        Appointment(
            owner_id=clinic.other_owner_id,
            pet_id=clinic.other_pet_id,
            service_id=clinic.service_id,
            staff_id=clinic.vet_id,
            starts_at=at(10, 30),
        )
    )
    db.session.commit()

    slots = client.get(
        "/appointments/available-slots",
        query_string={"service_id": clinic.service_id, "date": DAY.isoformat()},
    ).get_json()["slots"]
    assert slots

    for slot in slots:
        response = client.post(
            "/appointments",
            json=_payload(clinic, starts_at=slot["start_time"]),
            headers=auth_header(clinic.owner_id),
        )
        assert response.status_code == 201, slot
        # free the slot again so the next candidate is judged on its own
        appointment_id = response.get_json()["appointment"]["id"]
        client.delete(f"/appointments/{appointment_id}", headers=auth_header(clinic.owner_id))


def test_live_appointments_never_overlap(client, clinic, auth_header):
    add_block(clinic.vet_id, at(9), at(13))

    for minute in range(0, 240, 15):
        client.post(
            "/appointments",
            json=_payload(clinic, starts_at=at(9 + minute // 60, minute % 60).isoformat()),
            headers=auth_header(clinic.owner_id),
        )

    booked = sorted(
        appointment.starts_at
        for appointment in Appointment.query.filter(Appointment.status != "CANCELLED")
    )
    assert booked == [at(9), at(10), at(11), at(12)]


def test_non_string_notes_400(client, clinic, auth_header):
    add_block(clinic.vet_id, at(9), at(17))

    response = client.post(
        "/appointments",
        json=_payload(clinic, notes=5),
        headers=auth_header(clinic.owner_id),
    )

    assert response.status_code == 400
    assert response.get_json()["message"] == "notes must be a string"
    assert Appointment.query.count() == 0


def test_unique_slot_index_violation_409(client, clinic, auth_header):
    add_block(clinic.vet_id, at(9), at(17))
    # No duration, so the overlap check cannot see this booking; only the index can.
    db.session.add(Service(service_id=2, name="Consultation", service_type="VETERINARY", price=0))
    db.session.add(
        Appointment(
            owner_id=clinic.other_owner_id,
            pet_id=clinic.other_pet_id,
            service_id=2,
            staff_id=clinic.vet_id,
            starts_at=at(10),
        )
    )
    db.session.commit()

    response = client.post(
        "/appointments",
        json=_payload(clinic),
        headers=auth_header(clinic.owner_id),
    )
    data = response.get_json()

    assert response.status_code == 409
    assert data["error"] == "conflict"
    assert data["message"] == "This time slot with the selected staff is already booked."
    assert Appointment.query.count() == 1
