"""Tests for doctor queue endpoints."""

from uuid import uuid4

import pytest
from httpx import AsyncClient

from clinicq.services.notifier import queue_room

DAY = "2024-06-01"


async def book(client, headers, patient_id, doctor_id, time, **extra):
    response = await client.post(
        "/api/v1/appointments",
        json={
            "patient_id": str(patient_id),
            "doctor_id": str(doctor_id),
            "date": DAY,
            "time": time,
            **extra,
        },
        headers=headers,
    )
    assert response.status_code == 201
    return response.json()["data"]


@pytest.mark.asyncio
async def test_queue_status_created_on_first_access(
    client: AsyncClient,
    doctor_headers: dict,
    doctor_id,
) -> None:
    response = await client.get(
        "/api/v1/doctor/queue/status", params={"date": DAY}, headers=doctor_headers
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["doctor_id"] == str(doctor_id)
    assert data["status"] == "active"
    assert data["accepting_appointments"] is True
    assert data["now_serving"] is None
    assert data["waiting_count"] == 0


@pytest.mark.asyncio
async def test_queue_status_view(
    client: AsyncClient,
    doctor_headers: dict,
    patient_headers: dict,
    patient_id,
    doctor_id,
) -> None:
    for time in ("09:00", "09:30", "10:00"):
        await book(client, patient_headers, patient_id, doctor_id, time)
    await client.post("/api/v1/doctor/queue/call-next", json={"date": DAY}, headers=doctor_headers)

    response = await client.get(
        "/api/v1/doctor/queue/status", params={"date": DAY}, headers=doctor_headers
    )

    data = response.json()["data"]
    assert data["now_serving"]["queue_number"] == 1
    assert data["waiting_count"] == 2
    assert [a["queue_number"] for a in data["current_appointments"]] == [1, 2, 3]


@pytest.mark.asyncio
async def test_pause_requires_reason(client: AsyncClient, doctor_headers: dict) -> None:
    for reason in ("", "   "):
        response = await client.post(
            "/api/v1/doctor/queue/pause",
            json={"date": DAY, "reason": reason},
            headers=doctor_headers,
        )
        assert response.status_code == 400
        assert response.json()["message"] == "A reason is required to pause the queue"


@pytest.mark.asyncio
async def test_pause_blocks_call_next_until_resumed(
    client: AsyncClient,
    doctor_headers: dict,
    patient_headers: dict,
    patient_id,
    doctor_id,
    notifier,
    make_connection,
) -> None:
    watcher = make_connection()
    notifier.join(watcher, queue_room(doctor_id, DAY))
    await book(client, patient_headers, patient_id, doctor_id, "09:00")

    paused = await client.post(
        "/api/v1/doctor/queue/pause",
        json={"date": DAY, "reason": "Emergency"},
        headers=doctor_headers,
    )
    assert paused.status_code == 200
    assert paused.json()["data"]["status"] == "paused"
    assert paused.json()["data"]["pause_reason"] == "Emergency"
    assert watcher.events("queue_status_updated")[-1]["message"] == (
        "Queue paused by doctor: Emergency"
    )

    blocked = await client.post(
        "/api/v1/doctor/queue/call-next", json={"date": DAY}, headers=doctor_headers
    )
    assert blocked.status_code == 409

    twice = await client.post(
        "/api/v1/doctor/queue/pause",
        json={"date": DAY, "reason": "Again"},
        headers=doctor_headers,
    )
    assert twice.status_code == 409
    assert twice.json()["error"] == "InvalidTransitionException"

    resumed = await client.post(
        "/api/v1/doctor/queue/resume", json={"date": DAY}, headers=doctor_headers
    )
    assert resumed.json()["data"]["status"] == "active"
    assert resumed.json()["data"]["pause_reason"] is None
    assert resumed.json()["data"]["resumed_at"] is not None

    called = await client.post(
        "/api/v1/doctor/queue/call-next", json={"date": DAY}, headers=doctor_headers
    )
    assert called.status_code == 200
    assert called.json()["data"]["status"] == "in_session"


@pytest.mark.asyncio
async def test_call_next_while_in_session(
    client: AsyncClient,
    doctor_headers: dict,
    patient_headers: dict,
    patient_id,
    doctor_id,
) -> None:
    await book(client, patient_headers, patient_id, doctor_id, "09:00")
    await book(client, patient_headers, patient_id, doctor_id, "09:30")

    first = await client.post(
        "/api/v1/doctor/queue/call-next", json={"date": DAY}, headers=doctor_headers
    )
    second = await client.post(
        "/api/v1/doctor/queue/call-next", json={"date": DAY}, headers=doctor_headers
    )

    assert first.status_code == 200
    assert second.status_code == 409
    assert second.json()["error"] == "SessionInProgressException"


@pytest.mark.asyncio
async def test_call_next_empty_queue(client: AsyncClient, doctor_headers: dict) -> None:
    response = await client.post(
        "/api/v1/doctor/queue/call-next", json={"date": DAY}, headers=doctor_headers
    )

    assert response.status_code == 404
    assert response.json()["message"] == "No patients waiting"


@pytest.mark.asyncio
async def test_stop_and_start(
    client: AsyncClient,
    doctor_headers: dict,
    patient_headers: dict,
    patient_id,
    doctor_id,
) -> None:
    stopped = await client.post(
        "/api/v1/doctor/queue/stop", json={"date": DAY}, headers=doctor_headers
    )
    assert stopped.json()["data"]["status"] == "stopped"

    status = await client.get(
        "/api/v1/doctor/queue/status", params={"date": DAY}, headers=doctor_headers
    )
    assert status.json()["data"]["accepting_appointments"] is False

    rejected = await client.post(
        "/api/v1/appointments",
        json={
            "patient_id": str(patient_id),
            "doctor_id": str(doctor_id),
            "date": DAY,
            "time": "09:00",
        },
        headers=patient_headers,
    )
    assert rejected.status_code == 409

    started = await client.post(
        "/api/v1/doctor/queue/start", json={"date": DAY}, headers=doctor_headers
    )
    assert started.json()["data"]["status"] == "active"
    await book(client, patient_headers, patient_id, doctor_id, "09:00")


@pytest.mark.asyncio
async def test_walk_in(
    client: AsyncClient,
    doctor_headers: dict,
    doctor_id,
) -> None:
    response = await client.post(
        "/api/v1/doctor/queue/walk-in",
        json={"patient_id": str(uuid4()), "date": DAY, "time": "11:00", "notes": "urgent"},
        headers=doctor_headers,
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["doctor_id"] == str(doctor_id)
    assert data["source"] == "walk_in"
    assert data["priority"] == "urgent"


@pytest.mark.asyncio
async def test_waiting_and_reorder(
    client: AsyncClient,
    doctor_headers: dict,
    patient_headers: dict,
    patient_id,
    doctor_id,
) -> None:
    normal = await book(client, patient_headers, patient_id, doctor_id, "09:00")
    vip = await book(client, patient_headers, patient_id, doctor_id, "09:30", priority="vip")
    urgent = await book(client, patient_headers, patient_id, doctor_id, "10:00", notes="URGENT")

    fifo = await client.get(
        "/api/v1/doctor/queue/waiting", params={"date": DAY}, headers=doctor_headers
    )
    fifo_ids = [a["id"] for a in fifo.json()["data"]["items"]]
    assert fifo_ids == [normal["id"], vip["id"], urgent["id"]]

    ranked = await client.get(
        "/api/v1/doctor/queue/waiting",
        params={"date": DAY, "prioritized": "true"},
        headers=doctor_headers,
    )
    assert ranked.json()["data"]["prioritized"] is True
    assert [a["id"] for a in ranked.json()["data"]["items"]] == [
        urgent["id"],
        vip["id"],
        normal["id"],
    ]

    reordered = await client.post(
        "/api/v1/doctor/queue/reorder", json={"date": DAY}, headers=doctor_headers
    )
    items = reordered.json()["data"]["items"]
    assert [(a["id"], a["queue_number"]) for a in items] == [
        (urgent["id"], 1),
        (vip["id"], 2),
        (normal["id"], 3),
    ]

    called = await client.post(
        "/api/v1/doctor/queue/call-next", json={"date": DAY}, headers=doctor_headers
    )
    assert called.json()["data"]["id"] == urgent["id"]


@pytest.mark.asyncio
async def test_doctor_cannot_manage_other_queue(
    client: AsyncClient,
    doctor_headers: dict,
    patient_headers: dict,
) -> None:
    other = await client.post(
        "/api/v1/doctor/queue/pause",
        json={"doctor_id": str(uuid4()), "date": DAY, "reason": "Lunch"},
        headers=doctor_headers,
    )
    assert other.status_code == 403

    as_patient = await client.post(
        "/api/v1/doctor/queue/resume", json={"date": DAY}, headers=patient_headers
    )
    assert as_patient.status_code == 403


@pytest.mark.asyncio
async def test_admin_must_name_the_doctor(
    client: AsyncClient,
    admin_headers: dict,
    doctor_id,
) -> None:
    missing = await client.get(
        "/api/v1/doctor/queue/status", params={"date": DAY}, headers=admin_headers
    )
    assert missing.status_code == 400

    named = await client.post(
        "/api/v1/doctor/queue/pause",
        json={"doctor_id": str(doctor_id), "date": DAY, "reason": "Meeting"},
        headers=admin_headers,
    )
    assert named.status_code == 200


@pytest.mark.asyncio
async def test_doctor_queue_history(
    client: AsyncClient,
    doctor_headers: dict,
) -> None:
    for day in ("2024-06-01", "2024-06-02"):
        await client.get(
            "/api/v1/doctor/queue/status", params={"date": day}, headers=doctor_headers
        )

    response = await client.get("/api/v1/doctor/queues", headers=doctor_headers)

    assert [s["date"] for s in response.json()["data"]] == ["2024-06-02", "2024-06-01"]


@pytest.mark.asyncio
async def test_admin_monitoring(
    client: AsyncClient,
    admin_headers: dict,
    doctor_headers: dict,
) -> None:
    await client.post(
        "/api/v1/doctor/queue/pause",
        json={"date": DAY, "reason": "Emergency"},
        headers=doctor_headers,
    )
    await client.get(
        "/api/v1/doctor/queue/status", params={"date": "2024-06-02"}, headers=doctor_headers
    )

    queues = await client.get(
        "/api/v1/admin/queues", params={"status": "paused"}, headers=admin_headers
    )
    assert [q["pause_reason"] for q in queues.json()["data"]] == ["Emergency"]

    stats = await client.get("/api/v1/admin/queue-stats", headers=admin_headers)
    assert stats.json()["data"] == {
        "total": 2,
        "active": 1,
        "paused": 1,
        "stopped": 0,
        "today": 0,
    }

    forbidden = await client.get("/api/v1/admin/queue-stats", headers=doctor_headers)
    assert forbidden.status_code == 403


@pytest.mark.asyncio
async def test_patient_can_follow_a_queue(
    client: AsyncClient,
    patient_headers: dict,
    admin_headers: dict,
    patient_id,
    doctor_id,
) -> None:
    mine = await book(
        client, patient_headers, patient_id, doctor_id, "09:00", notes="Bring reports"
    )
    other_patient = uuid4()
    await book(client, admin_headers, other_patient, doctor_id, "09:30", notes="Private history")

    response = await client.get(
        "/api/v1/doctor/queue/status",
        params={"doctor_id": str(doctor_id), "date": DAY},
        headers=patient_headers,
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["waiting_count"] == 2
    own, theirs = data["current_appointments"]
    assert own["id"] == mine["id"]
    assert own["patient_id"] == str(patient_id)
    assert own["notes"] == "Bring reports"
    assert theirs["queue_number"] == 2
    assert theirs["patient_id"] is None
    assert theirs["notes"] is None

    waiting = await client.get(
        "/api/v1/doctor/queue/waiting",
        params={"doctor_id": str(doctor_id), "date": DAY},
        headers=patient_headers,
    )
    assert waiting.status_code == 200
    assert [a["patient_id"] for a in waiting.json()["data"]["items"]] == [str(patient_id), None]

    unnamed = await client.get(
        "/api/v1/doctor/queue/status", params={"date": DAY}, headers=patient_headers
    )
    assert unnamed.status_code == 400

    pause = await client.post(
        "/api/v1/doctor/queue/pause",
        json={"doctor_id": str(doctor_id), "date": DAY, "reason": "Lunch"},
        headers=patient_headers,
    )
    assert pause.status_code == 403


@pytest.mark.asyncio
async def test_queue_analytics(
    client: AsyncClient,
    doctor_headers: dict,
    patient_headers: dict,
    patient_id,
    doctor_id,
) -> None:
    await book(client, patient_headers, patient_id, doctor_id, "09:00", priority="urgent")
    vip = await book(client, patient_headers, patient_id, doctor_id, "09:30", notes="VIP guest")
    await book(client, patient_headers, patient_id, doctor_id, "10:00")
    walk_in = await client.post(
        "/api/v1/doctor/queue/walk-in",
        json={"patient_id": str(uuid4()), "date": DAY, "time": "10:30"},
        headers=doctor_headers,
    )
    assert walk_in.status_code == 201

    await client.post("/api/v1/doctor/queue/call-next", json={"date": DAY}, headers=doctor_headers)
    await client.delete(f"/api/v1/appointments/{vip['id']}", headers=patient_headers)

    response = await client.get(
        "/api/v1/doctor/queue/analytics", params={"date": DAY}, headers=doctor_headers
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["doctor_id"] == str(doctor_id)
    assert {k: v for k, v in data.items() if k not in ("doctor_id", "date")} == {
        "total_appointments": 4,
        "waiting": 2,
        "in_session": 1,
        "completed": 0,
        "cancelled": 1,
        "walk_ins": 1,
        "urgent": 1,
        "vip": 1,
    }

    forbidden = await client.get(
        "/api/v1/doctor/queue/analytics",
        params={"doctor_id": str(doctor_id), "date": DAY},
        headers=patient_headers,
    )
    assert forbidden.status_code == 403
