"""Tests for door lock routes."""

import pytest


@pytest.mark.asyncio
async def test_default_doors_locked(client):
    resp = await client.get("/api/door")
    assert resp.status_code == 200
    assert resp.json() == {"back": True, "front": True, "garage": True, "main": True}


@pytest.mark.asyncio
async def test_toggle(client):
    resp = await client.post("/api/door/toggle", json={"door": "front"})
    assert resp.json() == {"success": True, "locked": False}
    assert (await client.get("/api/door")).json()["front"] is False


@pytest.mark.asyncio
async def test_toggle_requires_door(client):
    resp = await client.post("/api/door/toggle", json={})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "door required"


@pytest.mark.asyncio
async def test_unlock_and_lock_all(client):
    assert (await client.post("/api/door/unlock_all")).json() == {"success": True}
    assert not any((await client.get("/api/door")).json().values())
    await client.post("/api/door/lock_all")
    assert all((await client.get("/api/door")).json().values())
