"""Door lock state."""

from typing import Dict

from smarthome.adapters.storage.database import Database

DEFAULT_DOORS = ("main", "front", "back", "garage")


class DoorRepository:
    def __init__(self, db: Database):
        self.db = db

    async def ensure_defaults(self) -> None:
        """Default doors start locked."""
        async with self.db.transaction() as tx:
            for door in DEFAULT_DOORS:
                await tx.execute(
                    "INSERT OR IGNORE INTO door_state (door, locked) VALUES (?, 1)", (door,)
                )

    async def states(self) -> Dict[str, bool]:
        await self.ensure_defaults()
        rows = await self.db.fetch_all("SELECT door, locked FROM door_state ORDER BY door")
        return {r["door"]: bool(r["locked"]) for r in rows}

    async def toggle(self, door: str) -> bool:
        """Flip a door's lock; an unknown door is created unlocked."""
        async with self.db.transaction() as tx:
            row = await tx.fetch_one("SELECT locked FROM door_state WHERE door = ?", (door,))
            locked = 0 if row is None or row["locked"] else 1
            await tx.execute(
                "INSERT INTO door_state (door, locked) VALUES (?, ?) "
                "ON CONFLICT (door) DO UPDATE SET locked = excluded.locked",
                (door, locked),
            )
        return bool(locked)

    async def set_all(self, locked: bool) -> None:
        await self.ensure_defaults()
        await self.db.execute("UPDATE door_state SET locked = ?", (1 if locked else 0,))
