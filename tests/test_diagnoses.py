"""Tests for diagnosis and billing endpoints."""

from decimal import Decimal
from uuid import uuid4

import pytest
from httpx import AsyncClient

from clinicq.schemas.diagnoses import DrugItem
from clinicq.services.diagnosis_service import compute_bill

DAY = "2024-06-01"

DRUGS = [
    {
        "name": "Amoxicillin",
        "dosage": "500mg",
        "frequency": "3x daily",
        "duration": "5 days",
        "quantity": 2,
        "price": 500,
    },
    {
        "name": "Paracetamol",
        "dosage": "1g",
        "frequency": "as needed",
        "duration": "3 days",
        "quantity": 1,
        "price": 1200,
    },
]


@pytest.fixture
async def appointment(client: AsyncClient, patient_headers: dict, patient_id, doctor_id) -> dict:
    response = await client.post(
        "/api/v1/appointments",
        json={
            "patient_id": str(patient_id),
            "doctor_id": str(doctor_id),
            "date": DAY,
            "time": "09:00",
        },
        headers=patient_headers,
    )
    return response.json()["data"]


def diagnosis_payload(appointment: dict, **overrides) -> dict:
    return {
        "appointment_id": appointment["id"],
        "patient_id": appointment["patient_id"],
        "doctor_id": appointment["doctor_id"],
        "diagnosis": "Acute bronchitis",
        "symptoms": "Cough, mild fever",
        "notes": "Review in one week",
        "drugs": DRUGS,
        "doctor_fee": 2000,
        **overrides,
    }


def test_compute_bill():
    drugs = [DrugItem(**d) for d in DRUGS]

    bill = compute_bill(drugs, Decimal("2000"), Decimal("1000.00"))

    assert bill == {
        "registration_fee": Decimal("1000.00"),
        "doctor_fee": Decimal("2000.00"),
        "drugs_cost": Decimal("2200.00"),
        "total_amount": Decimal("5200.00"),
    }


def test_compute_bill_rounds_to_cents():
    drug = DrugItem(
        name="Syrup", dosage="5ml", frequency="daily", duration="7 days", quantity=3, price="0.33"
    )

    bill = compute_bill([drug], Decimal("0"), Decimal("0"))

    assert bill["drugs_cost"] == Decimal("0.99")
    assert bill["total_amount"] == Decimal("0.99")


@pytest.mark.asyncio
async def test_create_diagnosis_computes_total_and_completes_appointment(
    client: AsyncClient,
    doctor_headers: dict,
    appointment: dict,
) -> None:
    response = await client.post(
        "/api/v1/diagnoses", json=diagnosis_payload(appointment), headers=doctor_headers
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["registration_fee"] == 1000.0
    assert data["doctor_fee"] == 2000.0
    assert data["drugs_cost"] == 2200.0
    assert data["total_amount"] == 5200.0
    assert [d["name"] for d in data["drugs"]] == ["Amoxicillin", "Paracetamol"]

    fetched = await client.get(
        f"/api/v1/appointments/{appointment['id']}", headers=doctor_headers
    )
    assert fetched.json()["data"]["status"] == "completed"
    assert fetched.json()["data"]["completed_at"] is not None


@pytest.mark.asyncio
async def test_second_diagnosis_is_rejected(
    client: AsyncClient,
    doctor_headers: dict,
    appointment: dict,
) -> None:
    first = await client.post(
        "/api/v1/diagnoses", json=diagnosis_payload(appointment), headers=doctor_headers
    )
    second = await client.post(
        "/api/v1/diagnoses",
        json=diagnosis_payload(appointment, diagnosis="Something else", doctor_fee=9999),
        headers=doctor_headers,
    )

    assert second.status_code == 409
    assert second.json()["error"] == "DuplicateDiagnosisException"

    stored = await client.get(
        f"/api/v1/diagnoses/appointment/{appointment['id']}", headers=doctor_headers
    )
    assert stored.json()["data"]["id"] == first.json()["data"]["id"]
    assert stored.json()["data"]["diagnosis"] == "Acute bronchitis"
    assert stored.json()["data"]["total_amount"] == 5200.0


@pytest.mark.asyncio
async def test_create_diagnosis_missing_fields(
    client: AsyncClient,
    doctor_headers: dict,
    appointment: dict,
) -> None:
    payload = diagnosis_payload(appointment)
    del payload["symptoms"]

    response = await client.post("/api/v1/diagnoses", json=payload, headers=doctor_headers)

    assert response.status_code == 400
    assert response.json()["error"] == "MissingFields"


@pytest.mark.asyncio
async def test_create_diagnosis_unknown_appointment(
    client: AsyncClient,
    doctor_headers: dict,
    appointment: dict,
) -> None:
    response = await client.post(
        "/api/v1/diagnoses",
        json=diagnosis_payload(appointment, appointment_id=str(uuid4())),
        headers=doctor_headers,
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_create_diagnosis_patient_mismatch(
    client: AsyncClient,
    doctor_headers: dict,
    appointment: dict,
) -> None:
    response = await client.post(
        "/api/v1/diagnoses",
        json=diagnosis_payload(appointment, patient_id=str(uuid4())),
        headers=doctor_headers,
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Patient and doctor must match the appointment"


@pytest.mark.asyncio
async def test_patient_cannot_write_diagnosis(
    client: AsyncClient,
    patient_headers: dict,
    appointment: dict,
) -> None:
    response = await client.post(
        "/api/v1/diagnoses", json=diagnosis_payload(appointment), headers=patient_headers
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_update_recomputes_total(
    client: AsyncClient,
    doctor_headers: dict,
    appointment: dict,
) -> None:
    created = await client.post(
        "/api/v1/diagnoses", json=diagnosis_payload(appointment), headers=doctor_headers
    )
    diagnosis_id = created.json()["data"]["id"]

    fee = await client.put(
        f"/api/v1/diagnoses/{diagnosis_id}", json={"doctor_fee": 2500}, headers=doctor_headers
    )
    assert fee.status_code == 200
    assert fee.json()["data"]["total_amount"] == 5700.0
    assert len(fee.json()["data"]["drugs"]) == 2

    drugs = await client.put(
        f"/api/v1/diagnoses/{diagnosis_id}",
        json={"drugs": DRUGS[:1], "notes": "Reduced prescription"},
        headers=doctor_headers,
    )
    data = drugs.json()["data"]
    assert data["drugs_cost"] == 1000.0
    assert data["total_amount"] == 4500.0
    assert data["notes"] == "Reduced prescription"
    assert [d["name"] for d in data["drugs"]] == ["Amoxicillin"]


@pytest.mark.asyncio
async def test_patient_history(
    client: AsyncClient,
    doctor_headers: dict,
    patient_headers: dict,
    appointment: dict,
    patient_id,
    doctor_id,
) -> None:
    await client.post(
        "/api/v1/diagnoses", json=diagnosis_payload(appointment), headers=doctor_headers
    )

    own = await client.get(f"/api/v1/diagnoses/patient/{patient_id}", headers=patient_headers)
    assert len(own.json()["data"]) == 1

    other = await client.get(f"/api/v1/diagnoses/patient/{uuid4()}", headers=patient_headers)
    assert other.status_code == 403

    by_doctor = await client.get(f"/api/v1/diagnoses/doctor/{doctor_id}", headers=doctor_headers)
    assert len(by_doctor.json()["data"]) == 1

    listed = await client.get("/api/v1/diagnoses", headers=patient_headers)
    assert [d["appointment_id"] for d in listed.json()["data"]] == [appointment["id"]]


@pytest.mark.asyncio
async def test_revenue_stats(
    client: AsyncClient,
    doctor_headers: dict,
    admin_headers: dict,
    patient_headers: dict,
    appointment: dict,
) -> None:
    await client.post(
        "/api/v1/diagnoses", json=diagnosis_payload(appointment), headers=doctor_headers
    )

    response = await client.get("/api/v1/diagnoses/revenue-stats", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["data"] == {
        "total_diagnoses": 1,
        "total_registration_fees": 1000.0,
        "total_doctor_fees": 2000.0,
        "total_drugs_cost": 2200.0,
        "total_revenue": 5200.0,
        "average_per_diagnosis": 5200.0,
    }

    other_doctor = await client.get(
        "/api/v1/diagnoses/revenue-stats",
        params={"doctor_id": str(uuid4())},
        headers=doctor_headers,
    )
    assert other_doctor.json()["data"]["total_diagnoses"] == 1

    denied = await client.get("/api/v1/diagnoses/revenue-stats", headers=patient_headers)
    assert denied.status_code == 403
