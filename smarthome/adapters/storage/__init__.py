"""SQLite storage adapters."""

from smarthome.adapters.storage.database import Database
from smarthome.adapters.storage.doors import DoorRepository
from smarthome.adapters.storage.sensors import SensorRepository
from smarthome.adapters.storage.users import DuplicateFaceError, UserRepository

__all__ = [
    "Database",
    "DoorRepository",
    "SensorRepository",
    "UserRepository",
    "DuplicateFaceError",
]
