"""Tests for Redis caching of revenue statistics."""

import json
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from httpx import AsyncClient

from clinicq.core.redis_client import CacheManager


def test_cache_manager_get_json():
    """Test CacheManager get_json method."""
    mock_redis = MagicMock()
    cache_manager = CacheManager(redis_client=mock_redis)

    # Test cache miss
    mock_redis.get.return_value = None
    assert cache_manager.get_json("revenue:all:all:all") is None
    mock_redis.get.assert_called_once_with("revenue:all:all:all")

    # Test cache hit
    mock_redis.reset_mock()
    mock_redis.get.return_value = '{"total_diagnoses": 3, "total_revenue": "5200.00"}'
    result = cache_manager.get_json("revenue:all:all:all")
    assert result == {"total_diagnoses": 3, "total_revenue": "5200.00"}


def test_cache_manager_set_json_serializes_decimals():
    mock_redis = MagicMock()
    cache_manager = CacheManager(redis_client=mock_redis)

    assert cache_manager.set_json("revenue:x", {"total": Decimal("10.50")}, ttl=60) is True
    mock_redis.set.assert_called_once_with("revenue:x", '{"total": "10.50"}', ex=60)

    mock_redis.reset_mock()
    assert cache_manager.set_json("revenue:y", {"total": 1}) is True
    mock_redis.set.assert_called_once_with("revenue:y", '{"total": 1}', ex=None)


def test_cache_manager_delete_pattern():
    mock_redis = MagicMock()
    cache_manager = CacheManager(redis_client=mock_redis)
    mock_redis.scan_iter.return_value = iter(["revenue:all:all:all", "revenue:2024-06-01:all:all"])
    mock_redis.delete.return_value = 2

    assert cache_manager.delete_pattern("revenue:*") == 2
    mock_redis.scan_iter.assert_called_once_with(match="revenue:*")
    mock_redis.delete.assert_called_once_with("revenue:all:all:all", "revenue:2024-06-01:all:all")

    mock_redis.reset_mock()
    mock_redis.scan_iter.return_value = iter([])
    assert cache_manager.delete_pattern("revenue:*") == 0
    mock_redis.delete.assert_not_called()


def test_cache_manager_degrades_when_redis_is_down():
    mock_redis = MagicMock()
    mock_redis.get.side_effect = ConnectionError("redis down")
    mock_redis.set.side_effect = ConnectionError("redis down")
    mock_redis.scan_iter.side_effect = ConnectionError("redis down")
    cache_manager = CacheManager(redis_client=mock_redis)

    assert cache_manager.get_json("revenue:x") is None
    assert cache_manager.set_json("revenue:x", {}, ttl=60) is False
    assert cache_manager.delete_pattern("revenue:*") == 0


async def _diagnose(client, headers, patient_headers, patient_id, doctor_id, time):
    booked = await client.post(
        "/api/v1/appointments",
        json={
            "patient_id": str(patient_id),
            "doctor_id": str(doctor_id),
            "date": "2024-06-01",
            "time": time,
        },
        headers=patient_headers,
    )
    appointment = booked.json()["data"]
    response = await client.post(
        "/api/v1/diagnoses",
        json={
            "appointment_id": appointment["id"],
            "patient_id": str(patient_id),
            "doctor_id": str(doctor_id),
            "diagnosis": "Common cold",
            "symptoms": "Sneezing",
            "doctor_fee": 1500,
        },
        headers=headers,
    )
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_revenue_stats_caching(
    client: AsyncClient,
    fake_redis,
    admin_headers: dict,
    doctor_headers: dict,
    patient_headers: dict,
    patient_id,
    doctor_id,
) -> None:
    """Revenue stats are served from cache until a diagnosis write invalidates them."""
    await _diagnose(client, doctor_headers, patient_headers, patient_id, doctor_id, "09:00")

    first = await client.get("/api/v1/diagnoses/revenue-stats", headers=admin_headers)
    assert first.json()["data"]["total_revenue"] == 2500.0
    assert "revenue:all:all:all" in fake_redis.store

    # Tamper with the cached value to prove the next read comes from Redis
    cached = json.loads(fake_redis.store["revenue:all:all:all"])
    fake_redis.store["revenue:all:all:all"] = json.dumps({**cached, "total_diagnoses": 42})
    second = await client.get("/api/v1/diagnoses/revenue-stats", headers=admin_headers)
    assert second.json()["data"]["total_diagnoses"] == 42

    await _diagnose(client, doctor_headers, patient_headers, patient_id, doctor_id, "09:30")
    assert not [key for key in fake_redis.store if key.startswith("revenue:")]

    third = await client.get("/api/v1/diagnoses/revenue-stats", headers=admin_headers)
    assert third.json()["data"]["total_diagnoses"] == 2
    assert third.json()["data"]["total_revenue"] == 5000.0
    assert third.json()["data"]["average_per_diagnosis"] == 2500.0
