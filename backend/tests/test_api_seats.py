"""
Tests for the seat map HTTP endpoints.
"""

import asyncio

import pytest
from httpx import AsyncClient

from seatsync.services.interfaces.remote_store import RemoteStoreError

from conftest import TRIP_ID, VESSEL_ID, wait_for

SEATS_URL = f"/api/v1/trips/{TRIP_ID}/seats"
PARAMS = {"vessel_id": VESSEL_ID}


@pytest.mark.asyncio
async def test_get_seat_map(client: AsyncClient):
    response = await client.get(SEATS_URL, params=PARAMS)
    assert response.status_code == 200
    data = response.json()
    assert data["trip_id"] == TRIP_ID
    assert data["is_connected"] is True
    assert data["connection_status"] == "connected"
    assert data["snapshot"] == {"total": 8, "available": 8, "booked": 0, "blocked": 0}
    assert len(data["seats"]) == 8
    assert data["rows"][0]["groups"] == [["seat-1A", "seat-1B"], ["seat-1C", "seat-1D"]]
    assert data["load_error"] is None


@pytest.mark.asyncio
async def test_seat_map_requires_vessel(client: AsyncClient):
    response = await client.get(SEATS_URL)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_block_and_release_seat(client: AsyncClient):
    response = await client.post(f"{SEATS_URL}/seat-1A/block", params=PARAMS)
    assert response.status_code == 200
    data = response.json()
    assert data["outcome"] == "succeeded"
    assert data["status"] == "blocked"
    assert data["message"] == "Seat blocked"
    assert data["snapshot"]["blocked"] == 1

    response = await client.post(f"{SEATS_URL}/seat-1A/release", params=PARAMS)
    assert response.status_code == 200
    assert response.json()["status"] == "available"


@pytest.mark.asyncio
async def test_toggle_seat(client: AsyncClient):
    first = await client.post(f"{SEATS_URL}/seat-2C/toggle", params=PARAMS)
    second = await client.post(f"{SEATS_URL}/seat-2C/toggle", params=PARAMS)
    assert first.json()["action"] == "block"
    assert second.json()["action"] == "release"
    assert second.json()["status"] == "available"


@pytest.mark.asyncio
async def test_block_booked_seat_returns_409(client: AsyncClient, remote):
    remote.seed_reservation(TRIP_ID, "seat-1D", booking_id="b1", is_available=False)

    response = await client.post(f"{SEATS_URL}/seat-1D/block", params=PARAMS)
    assert response.status_code == 409
    assert response.json()["detail"] == "This seat is already booked and cannot be blocked."
    assert remote.writes() == []


@pytest.mark.asyncio
async def test_unknown_seat_returns_404(client: AsyncClient):
    response = await client.post(f"{SEATS_URL}/seat-404/block", params=PARAMS)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_write_failure_returns_502(client: AsyncClient, remote):
    await client.get(SEATS_URL, params=PARAMS)
    remote.fail_writes = RemoteStoreError("connection reset")

    response = await client.post(f"{SEATS_URL}/seat-2A/block", params=PARAMS)
    assert response.status_code == 502
    assert response.json()["detail"] == "Failed to block seat. Please try again."


@pytest.mark.asyncio
async def test_concurrent_command_on_same_seat_returns_202(client: AsyncClient, remote):
    await client.get(SEATS_URL, params=PARAMS)
    remote.write_gate = asyncio.Event()

    first = asyncio.create_task(client.post(f"{SEATS_URL}/seat-2B/block", params=PARAMS))
    await wait_for(lambda: len(remote.writes()) == 1)

    second = await client.post(f"{SEATS_URL}/seat-2B/block", params=PARAMS)
    assert second.status_code == 202
    assert second.json()["outcome"] == "dropped"

    remote.write_gate.set()
    response = await first
    assert response.status_code == 200
    assert len(remote.writes()) == 1


@pytest.mark.asyncio
async def test_reload_failure_returns_503_and_keeps_map(client: AsyncClient, remote):
    await client.post(f"{SEATS_URL}/seat-1B/block", params=PARAMS)
    remote.fail_reads = True

    response = await client.post(f"{SEATS_URL}/reload", params=PARAMS)
    assert response.status_code == 503

    remote.fail_reads = False
    response = await client.get(SEATS_URL, params=PARAMS)
    data = response.json()
    assert data["snapshot"]["blocked"] == 1
    assert data["load_error"] == "Failed to load seat data. Please try again."


@pytest.mark.asyncio
async def test_first_load_failure_returns_503(client: AsyncClient, remote, registry):
    remote.fail_reads = True

    response = await client.get(SEATS_URL, params=PARAMS)
    assert response.status_code == 503
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_seat_map_reflects_other_clients(client: AsyncClient, remote):
    await client.get(SEATS_URL, params=PARAMS)
    await remote.insert_reservation(TRIP_ID, "seat-2D", is_available=False, is_reserved=True)
    await remote.drain()

    data = (await client.get(SEATS_URL, params=PARAMS)).json()
    seat = next(s for s in data["seats"] if s["id"] == "seat-2D")
    assert seat["status"] == "blocked"
    assert seat["is_available"] is False
    assert seat["recently_updated"] is True
    assert "seat-2D" in data["recently_updated"]


@pytest.mark.asyncio
async def test_vessel_change_reopens_session(client: AsyncClient, remote, registry):
    remote.add_seat("vessel-2", "1A", 1, id="v2-1A")

    await client.get(SEATS_URL, params=PARAMS)
    response = await client.get(SEATS_URL, params={"vessel_id": "vessel-2"})

    assert response.json()["snapshot"]["total"] == 1
    assert registry.get(TRIP_ID).vessel_id == "vessel-2"
    assert len(registry) == 1


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_metrics(client: AsyncClient):
    await client.post(f"{SEATS_URL}/seat-1A/block", params=PARAMS)
    response = await client.get("/metrics")
    assert response.status_code == 200
    assert "seat_commands_total" in response.text
