"""Repository tests against a temporary SQLite database."""

import json
from datetime import datetime, timezone

import aiosqlite
import pytest

from smarthome.adapters.storage.doors import DEFAULT_DOORS, DoorRepository
from smarthome.adapters.storage.sensors import SensorRepository
from smarthome.adapters.storage.users import DuplicateFaceError, UserRepository
from smarthome.domain.policies import default_policies
from smarthome.errors import ValidationError

FACE_A = json.dumps({"vec": [0.1, 0.2, 0.3]})
FACE_A_NEAR = json.dumps({"vec": [0.11, 0.2, 0.31]})
FACE_B = json.dumps({"vec": [0.9, 0.1, 0.5]})


@pytest.fixture
def users(db):
    return UserRepository(db)


@pytest.fixture
def doors(db):
    return DoorRepository(db)


@pytest.fixture
def sensors(db):
    return SensorRepository(db)


class TestDatabase:
    @pytest.mark.asyncio
    async def test_transaction_rolls_back(self, db):
        with pytest.raises(RuntimeError):
            async with db.transaction() as tx:
                await tx.execute("INSERT INTO door_state (door, locked) VALUES ('shed', 0)")
                raise RuntimeError("boom")
        assert await db.fetch_one("SELECT * FROM door_state WHERE door = 'shed'") is None

    @pytest.mark.asyncio
    async def test_connect_is_idempotent(self, db):
        conn = db.conn
        await db.connect()
        assert db.conn is conn


class TestUserRepository:
    @pytest.mark.asyncio
    async def test_create_stores_default_policies(self, users):
        user_id = await users.create("Kid", role="member", pin="1111")
        listed = await users.list_with_policies()
        assert listed[0]["id"] == user_id
        assert listed[0]["policies"] == default_policies("member")

    @pytest.mark.asyncio
    async def test_create_with_explicit_policies(self, users):
        custom = default_policies("parent")
        custom["controls"]["power"] = False
        await users.create("Mom", role="parent", policies=custom)
        listed = await users.list_with_policies()
        assert listed[0]["policies"]["controls"]["power"] is False

    @pytest.mark.asyncio
    async def test_face_templates(self, users):
        await users.register_with_face("Ana", FACE_A)
        await users.register_with_face("Ben", FACE_B)
        assert [r["name"] for r in await users.face_templates()] == ["Ana", "Ben"]

    @pytest.mark.asyncio
    async def test_register_and_find_by_face(self, users):
        user = await users.register_with_face("Ana", FACE_A, role="parent")
        assert len(user["faceId"]) <= 16
        found = await users.find_by_face(FACE_A_NEAR)
        assert found["id"] == user["id"]
        assert found["role"] == "parent"
        assert await users.find_by_face(FACE_B) is None

    @pytest.mark.asyncio
    async def test_duplicate_face_rejected(self, users):
        first = await users.register_with_face("Ana", FACE_A)
        with pytest.raises(DuplicateFaceError) as exc_info:
            await users.register_with_face("Impostor", FACE_A_NEAR)
        assert exc_info.value.user["id"] == first["id"]
        assert len(await users.list_with_policies()) == 1

    @pytest.mark.asyncio
    async def test_find_by_pin(self, users):
        await users.create("Bob", pin="4242")
        assert (await users.find_by_pin("4242"))["name"] == "Bob"
        assert await users.find_by_pin("0000") is None

    @pytest.mark.asyncio
    async def test_duplicate_email_integrity_error(self, users):
        await users.create("A", email="a@example.com")
        with pytest.raises(aiosqlite.IntegrityError):
            await users.create("B", email="a@example.com")

    @pytest.mark.asyncio
    async def test_update_fields_and_policies(self, users):
        user_id = await users.create("Bob")
        custom = default_policies("member")
        custom["controls"]["voice"] = False
        await users.update(user_id, {"name": "Robert", "bogus": "x"}, policies=custom)
        listed = await users.list_with_policies()
        assert listed[0]["name"] == "Robert"
        assert listed[0]["policies"]["controls"]["voice"] is False

    @pytest.mark.asyncio
    async def test_delete_cascades(self, users, db):
        user = await users.register_with_face("Ana", FACE_A)
        assert await users.delete(user["id"]) == 1
        assert await db.fetch_all("SELECT * FROM face_templates") == []
        assert await db.fetch_all("SELECT * FROM user_policies") == []
        assert await users.delete(user["id"]) == 0

    @pytest.mark.asyncio
    async def test_ensure_super_admin_upserts(self, users):
        assert await users.ensure_super_admin("Root", "root@example.com", "1") is True
        assert await users.ensure_super_admin("Root 2", "root@example.com", "2") is True
        row = await users.find_admin_by_email("root@example.com")
        assert row["name"] == "Root 2"
        assert row["pin"] == "2"
        assert row["relation"] == "superadmin"

    @pytest.mark.asyncio
    async def test_ensure_super_admin_skipped_without_pin(self, users):
        assert await users.ensure_super_admin("Root", "root@example.com", "") is False
        assert await users.find_admin_by_email("root@example.com") is None


class TestDoorRepository:
    @pytest.mark.asyncio
    async def test_defaults_locked(self, doors):
        states = await doors.states()
        assert set(states) == set(DEFAULT_DOORS)
        assert all(states.values())

    @pytest.mark.asyncio
    async def test_toggle(self, doors):
        await doors.ensure_defaults()
        assert await doors.toggle("main") is False
        assert await doors.toggle("main") is True

    @pytest.mark.asyncio
    async def test_toggle_unknown_door_unlocks(self, doors):
        assert await doors.toggle("shed") is False
        assert (await doors.states())["shed"] is False

    @pytest.mark.asyncio
    async def test_set_all(self, doors):
        await doors.set_all(False)
        assert not any((await doors.states()).values())
        await doors.set_all(True)
        assert all((await doors.states()).values())


class TestSensorRepository:
    @pytest.mark.asyncio
    async def test_insert_and_history_newest_first(self, sensors):
        await sensors.insert_reading("d1", "temp", 20, unit="C", recorded_at="2024-01-01T00:00:00Z")
        await sensors.insert_reading("d1", "temp", 21, unit="C", recorded_at="2024-01-02T00:00:00Z")
        await sensors.insert_reading("d1", "hum", 40, recorded_at="2024-01-03T00:00:00Z")

        rows = await sensors.history("d1", metric="temp")
        assert [r["value"] for r in rows] == [21.0, 20.0]
        assert rows[0]["recordedAt"] == "2024-01-02T00:00:00.000Z"
        assert rows[0]["unit"] == "C"

        since = datetime(2024, 1, 2, tzinfo=timezone.utc)
        assert len(await sensors.history("d1", since=since)) == 2
        assert len(await sensors.history("d1", limit=1)) == 1

    @pytest.mark.asyncio
    async def test_metadata_round_trip(self, sensors):
        await sensors.insert_reading("d1", "temp", 1, metadata={"fw": "1.2"})
        assert (await sensors.latest("d1", "temp"))["metadata"] == {"fw": "1.2"}

    @pytest.mark.asyncio
    async def test_invalid_recorded_at(self, sensors):
        with pytest.raises(ValidationError, match="invalid recordedAt"):
            await sensors.insert_reading("d1", "temp", 1, recorded_at="not a date")

    @pytest.mark.asyncio
    async def test_latest_per_metric(self, sensors):
        await sensors.insert_reading("d1", "temp", 20, recorded_at="2024-01-01T00:00:00Z")
        await sensors.insert_reading("d1", "temp", 22, recorded_at="2024-01-05T00:00:00Z")
        await sensors.insert_reading("d1", "hum", 40, recorded_at="2024-01-03T00:00:00Z")
        latest = await sensors.latest_per_metric("d1")
        assert [(r["metric"], r["value"]) for r in latest] == [("hum", 40.0), ("temp", 22.0)]
        assert await sensors.latest_per_metric("unknown") == []

    @pytest.mark.asyncio
    async def test_device_state(self, sensors):
        assert await sensors.device_state("fan1") is None
        assert await sensors.set_device_state("fan1", 7) == 1
        assert await sensors.device_state("fan1") == 1
        await sensors.set_device_state("fan1", "0")
        assert await sensors.device_state("fan1") == 0

    @pytest.mark.asyncio
    async def test_device_states_seeds_missing(self, sensors):
        await sensors.set_device_state("fan1", 1)
        states = await sensors.device_states(["fan1", "lamp"])
        assert states["fan1"]["value"] == 1
        assert states["lamp"]["value"] == 0
        assert await sensors.device_state("lamp") == 0

    @pytest.mark.asyncio
    async def test_device_states_all(self, sensors):
        await sensors.set_device_state("a", 1)
        await sensors.set_device_state("b", 0)
        assert set(await sensors.device_states()) == {"a", "b"}
