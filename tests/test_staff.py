"""Tests for the staff directory and staff qualifications."""
from __future__ import annotations

from conftest import DAY, add_block, at
from petcare.extensions import db
from petcare.models import ActivityLog, Appointment, StaffAvailability, User

SLOTS_URL = "/appointments/available-slots"


def test_list_staff_includes_qualifications(client, clinic):
    response = client.get("/staff")
    staff = response.get_json()["staff"]

    assert response.status_code == 200
    assert [member["id"] for member in staff] == [clinic.groomer_id, clinic.vet_id]
    assert staff[1]["services"] == [{"id": clinic.service_id, "name": "General Checkup"}]
    assert staff[0]["services"] == []


def test_get_owner_as_staff_404(client, clinic):
    response = client.get(f"/staff/{clinic.owner_id}")

    assert response.status_code == 404


def test_admin_creates_staff_201(client, clinic, auth_header):
    response = client.post(
        "/staff",
        json={
            "email": "  Nina@Example.com ",
            "first_name": "Nina",
            "last_name": "Nurse",
            "role": "clinic_staff",
            "phone": "555-0100",
        },
        headers=auth_header(clinic.admin_id),
    )
    data = response.get_json()

    assert response.status_code == 201
    assert data["staff"]["email"] == "nina@example.com"
    assert data["staff"]["role"] == "CLINIC_STAFF"
    assert data["staff"]["services"] == []


def test_create_staff_with_owner_role_400(client, clinic, auth_header):
    response = client.post(
        "/staff",
        json={"email": "x@example.com", "first_name": "X", "last_name": "Y", "role": "OWNER"},
        headers=auth_header(clinic.admin_id),
    )

    assert response.status_code == 400


def test_create_staff_with_taken_email_409(client, clinic, auth_header):
    response = client.post(
        "/staff",
        json={"email": "victor@example.com", "first_name": "V", "last_name": "Two", "role": "GROOMER"},
        headers=auth_header(clinic.admin_id),
    )

    assert response.status_code == 409


def test_staff_cannot_create_staff_403(client, clinic, auth_header):
    response = client.post(
        "/staff",
        json={"email": "x@example.com", "first_name": "X", "last_name": "Y", "role": "GROOMER"},
        headers=auth_header(clinic.vet_id),
    )

    assert response.status_code == 403


def test_update_staff_role_and_phone(client, clinic, auth_header):
    response = client.patch(
        f"/staff/{clinic.groomer_id}",
        json={"role": "CLINIC_STAFF", "phone": "555-0199"},
        headers=auth_header(clinic.admin_id),
    )
    data = response.get_json()

    assert response.status_code == 200
    assert data["staff"]["role"] == "CLINIC_STAFF"
    assert data["staff"]["phone"] == "555-0199"


def test_promoting_staff_to_admin_400(client, clinic, auth_header):
    response = client.patch(
        f"/staff/{clinic.groomer_id}",
        json={"role": "ADMIN"},
        headers=auth_header(clinic.admin_id),
    )

    assert response.status_code == 400
    assert db.session.get(User, clinic.groomer_id).role == "GROOMER"


def test_qualification_makes_staff_bookable(client, clinic, auth_header):
    add_block(clinic.groomer_id, at(14), at(15))
    query = {"service_id": clinic.service_id, "date": DAY.isoformat()}

    before = client.get(SLOTS_URL, query_string=query).get_json()["slots"]
    response = client.post(
        f"/staff/{clinic.groomer_id}/services",
        json={"service_id": clinic.service_id},
        headers=auth_header(clinic.admin_id),
    )
    after = client.get(SLOTS_URL, query_string=query).get_json()["slots"]

    assert response.status_code == 201
    assert response.get_json()["staff"]["services"] == [{"id": clinic.service_id, "name": "General Checkup"}]
    assert before == []
    assert [(slot["staff_id"], slot["start_time"]) for slot in after] == [
        (clinic.groomer_id, "2030-06-03T14:00:00Z")
    ]


def test_duplicate_qualification_409(client, clinic, auth_header):
    response = client.post(
        f"/staff/{clinic.vet_id}/services",
        json={"service_id": clinic.service_id},
        headers=auth_header(clinic.admin_id),
    )

    assert response.status_code == 409


def test_qualification_for_unknown_service_404(client, clinic, auth_header):
    response = client.post(
        f"/staff/{clinic.groomer_id}/services",
        json={"service_id": 99},
        headers=auth_header(clinic.admin_id),
    )

    assert response.status_code == 404


def test_qualification_requires_integer_service_id(client, clinic, auth_header):
    response = client.post(
        f"/staff/{clinic.groomer_id}/services",
        json={"service_id": "checkup"},
        headers=auth_header(clinic.admin_id),
    )

    assert response.status_code == 400


def test_owner_cannot_assign_qualification_403(client, clinic, auth_header):
    response = client.post(
        f"/staff/{clinic.groomer_id}/services",
        json={"service_id": clinic.service_id},
        headers=auth_header(clinic.owner_id),
    )

    assert response.status_code == 403


def test_remove_qualification(client, clinic, auth_header):
    response = client.delete(
        f"/staff/{clinic.vet_id}/services/{clinic.service_id}",
        headers=auth_header(clinic.admin_id),
    )
    missing = client.delete(
        f"/staff/{clinic.vet_id}/services/{clinic.service_id}",
        headers=auth_header(clinic.admin_id),
    )

    assert response.status_code == 200
    assert response.get_json()["staff"]["services"] == []
    assert missing.status_code == 404


def test_delete_staff_with_open_appointment_400(client, clinic, auth_header):
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

    response = client.delete(f"/staff/{clinic.vet_id}", headers=auth_header(clinic.admin_id))

    assert response.status_code == 400
    assert db.session.get(User, clinic.vet_id) is not None


def test_delete_staff_with_log_history_409(client, clinic, auth_header):
    db.session.add(
        ActivityLog(pet_id=clinic.pet_id, staff_id=clinic.groomer_id, activity_type="WALKING", details="Park")
    )
    db.session.commit()

    response = client.delete(f"/staff/{clinic.groomer_id}", headers=auth_header(clinic.admin_id))

    assert response.status_code == 409


def test_delete_staff_removes_blocks(client, clinic, auth_header):
    add_block(clinic.groomer_id, at(9), at(12))

    response = client.delete(f"/staff/{clinic.groomer_id}", headers=auth_header(clinic.admin_id))

    assert response.status_code == 200
    assert db.session.get(User, clinic.groomer_id) is None
    assert StaffAvailability.query.filter_by(staff_id=clinic.groomer_id).count() == 0
