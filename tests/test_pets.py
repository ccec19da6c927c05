"""Tests for the pet registry endpoints."""
from __future__ import annotations

from conftest import at
from petcare.extensions import db
from petcare.models import Appointment, Pet


def test_owner_registers_pet_201(client, clinic, auth_header):
    response = client.post(
        "/pets",
        json={"name": " Bella ", "species": "Dog", "breed": "Beagle", "date_of_birth": "2024-02-29"},
        headers=auth_header(clinic.owner_id),
    )
    data = response.get_json()

    assert response.status_code == 201
    assert data["pet"]["name"] == "Bella"
    assert data["pet"]["owner_id"] == clinic.owner_id
    assert data["pet"]["date_of_birth"] == "2024-02-29"


def test_staff_cannot_register_pet_403(client, clinic, auth_header):
    response = client.post(
        "/pets",
        json={"name": "Bella", "species": "Dog"},
        headers=auth_header(clinic.vet_id),
    )

    assert response.status_code == 403


def test_invalid_pet_payload_400(client, clinic, auth_header):
    headers = auth_header(clinic.owner_id)

    no_species = client.post("/pets", json={"name": "Bella"}, headers=headers)
    bad_date = client.post(
        "/pets", json={"name": "Bella", "species": "Dog", "date_of_birth": "last spring"}, headers=headers
    )
    future = client.post(
        "/pets", json={"name": "Bella", "species": "Dog", "date_of_birth": "2999-01-01"}, headers=headers
    )
    numeric_name = client.post("/pets", json={"name": 3, "species": "Dog"}, headers=headers)

    for response in (no_species, bad_date, future, numeric_name):
        assert response.status_code == 400


def test_owner_lists_only_own_pets(client, clinic, auth_header):
    db.session.add(Pet(pet_id=3, owner_id=clinic.owner_id, name="Ace", species="Dog"))
    db.session.commit()

    owner = client.get("/pets", headers=auth_header(clinic.owner_id)).get_json()["pets"]
    vet = client.get("/pets", headers=auth_header(clinic.vet_id)).get_json()["pets"]

    assert [pet["name"] for pet in owner] == ["Ace", "Rex"]
    assert [pet["name"] for pet in vet] == ["Ace", "Milo", "Rex"]


def test_groomer_cannot_list_pets_403(client, clinic, auth_header):
    response = client.get("/pets", headers=auth_header(clinic.groomer_id))

    assert response.status_code == 403


def test_owner_cannot_view_other_owners_pet_403(client, clinic, auth_header):
    response = client.get(f"/pets/{clinic.other_pet_id}", headers=auth_header(clinic.owner_id))
    admin = client.get(f"/pets/{clinic.other_pet_id}", headers=auth_header(clinic.admin_id))

    assert response.status_code == 403
    assert admin.status_code == 200


def test_owner_updates_pet(client, clinic, auth_header):
    response = client.patch(
        f"/pets/{clinic.pet_id}",
        json={"breed": "Collie"},
        headers=auth_header(clinic.owner_id),
    )

    assert response.status_code == 200
    assert response.get_json()["pet"]["breed"] == "Collie"


def test_updating_someone_elses_pet_404(client, clinic, auth_header):
    response = client.patch(
        f"/pets/{clinic.other_pet_id}",
        json={"breed": "Collie"},
        headers=auth_header(clinic.owner_id),
    )

    assert response.status_code == 404
    assert db.session.get(Pet, clinic.other_pet_id).breed is None


def test_delete_pet_without_history(client, clinic, auth_header):
    response = client.delete(f"/pets/{clinic.pet_id}", headers=auth_header(clinic.owner_id))

    assert response.status_code == 200
    assert db.session.get(Pet, clinic.pet_id) is None


def test_delete_pet_with_appointment_409(client, clinic, auth_header):
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

    response = client.delete(f"/pets/{clinic.pet_id}", headers=auth_header(clinic.owner_id))

    assert response.status_code == 409
