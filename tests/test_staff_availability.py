"""Tests for the availability block and service catalogue endpoints."""
from __future__ import annotations

from datetime import date

from conftest import add_block, at
from petcare.extensions import db
from petcare.models import Appointment, StaffAvailability


def test_staff_member_adds_own_block_201(client, clinic, auth_header):
    response = client.post(
        f"/staff/{clinic.vet_id}/availability",
        json={"start_time": "2030-06-03T09:00:00Z", "end_time": "2030-06-03T17:00:00Z"},
        headers=auth_header(clinic.vet_id),
    )
    data = response.get_json()

    assert response.status_code == 201
    assert data["availability"]["staff_id"] == clinic.vet_id
    assert data["availability"]["start_time"] == "2030-06-03T09:00:00Z"


def test_staff_cannot_edit_colleagues_block_403(client, clinic, auth_header):
    response = client.post(
        f"/staff/{clinic.vet_id}/availability",
        json={"start_time": "2030-06-03T09:00:00Z", "end_time": "2030-06-03T17:00:00Z"},
        headers=auth_header(clinic.groomer_id),
    )

    assert response.status_code == 403


def test_block_must_end_after_it_starts_400(client, clinic, auth_header):
    response = client.post(
        f"/staff/{clinic.vet_id}/availability",
        json={"start_time": "2030-06-03T17:00:00Z", "end_time": "2030-06-03T09:00:00Z"},
        headers=auth_header(clinic.admin_id),
    )

    assert response.status_code == 400
    assert StaffAvailability.query.count() == 0


def test_block_for_non_staff_404(client, clinic, auth_header):
    response = client.post(
        f"/staff/{clinic.owner_id}/availability",
        json={"start_time": "2030-06-03T09:00:00Z", "end_time": "2030-06-03T17:00:00Z"},
        headers=auth_header(clinic.admin_id),
    )

    assert response.status_code == 404


def test_list_blocks_for_a_day(client, clinic):
    add_block(clinic.vet_id, at(9), at(12))
    add_block(clinic.vet_id, at(13), at(17))
    add_block(clinic.vet_id, at(9, day=date(2030, 6, 5)), at(12, day=date(2030, 6, 5)))

    response = client.get(f"/staff/{clinic.vet_id}/availability", query_string={"date": "2030-06-03"})
    data = response.get_json()

    assert response.status_code == 200
    assert [b["start_time"] for b in data["availability"]] == [
        "2030-06-03T09:00:00Z",
        "2030-06-03T13:00:00Z",
    ]


def test_deleting_block_keeps_appointments(client, clinic, auth_header):
    block_id = add_block(clinic.vet_id, at(9), at(12))
    db.session.add(
        Appointment(
            owner_id=clinic.owner_id,
            pet_id=clinic.pet_id,
            service_id=clinic.service_id,
            staff_id=clinic.vet_id,
            starts_at=at(10),
        )
    )
    db.session.commit()

    response = client.delete(f"/availability/{block_id}", headers=auth_header(clinic.admin_id))

    assert response.status_code == 200
    assert db.session.get(StaffAvailability, block_id) is None
    assert Appointment.query.count() == 1


def test_list_services_and_qualified_staff(client, clinic):
    services = client.get("/services").get_json()["services"]
    staff = client.get(f"/services/{clinic.service_id}/staff").get_json()["staff"]

    assert [s["name"] for s in services] == ["General Checkup"]
    assert [member["id"] for member in staff] == [clinic.vet_id]


def test_qualified_staff_for_unknown_service_404(client, clinic):
    response = client.get("/services/999/staff")

    assert response.status_code == 404
