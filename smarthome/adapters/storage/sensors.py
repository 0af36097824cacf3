"""Sensor readings and the on/off device state derived from them."""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from smarthome.adapters.storage.database import Database
from smarthome.domain.sensors import (
    DEFAULT_SENSOR_METRIC,
    DEFAULT_HISTORY_LIMIT,
    binary_state,
    format_timestamp,
    normalize_metadata,
    parse_timestamp,
    row_to_reading,
    utc_now_iso,
)
from smarthome.errors import ValidationError

logger = logging.getLogger(__name__)

READING_COLUMNS = "id, device_id, metric, value, unit, metadata, recorded_at"


class SensorRepository:
    def __init__(self, db: Database):
        self.db = db

    async def insert_reading(
        self,
        device_id: str,
        metric: str,
        value: float,
        unit: Optional[str] = None,
        metadata: Any = None,
        recorded_at: Any = None,
    ) -> Dict[str, Any]:
        try:
            ts = parse_timestamp(recorded_at)
        except ValueError as e:
            raise ValidationError("invalid recordedAt") from e
        numeric = float(value)
        recorded = format_timestamp(ts)
        cursor = await self.db.execute(
            "INSERT INTO sensor_readings (device_id, metric, value, unit, metadata, recorded_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (device_id, metric, numeric, unit or None, normalize_metadata(metadata), recorded),
        )
        return {
            "id": cursor.lastrowid,
            "deviceId": device_id,
            "metric": metric,
            "value": numeric,
            "unit": unit or None,
            "metadata": metadata,
            "recordedAt": recorded,
        }

    async def history(
        self,
        device_id: str,
        metric: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> List[Dict[str, Any]]:
        """Newest first."""
        sql = f"SELECT {READING_COLUMNS} FROM sensor_readings WHERE device_id = ?"
        params: List[Any] = [device_id]
        if metric:
            sql += " AND metric = ?"
            params.append(metric)
        if since is not None:
            sql += " AND recorded_at >= ?"
            params.append(format_timestamp(since))
        if until is not None:
            sql += " AND recorded_at <= ?"
            params.append(format_timestamp(until))
        sql += " ORDER BY recorded_at DESC, id DESC LIMIT ?"
        params.append(limit)
        rows = await self.db.fetch_all(sql, params)
        return [row_to_reading(r) for r in rows]

    async def latest(self, device_id: str, metric: str) -> Optional[Dict[str, Any]]:
        row = await self.db.fetch_one(
            f"SELECT {READING_COLUMNS} FROM sensor_readings WHERE device_id = ? AND metric = ? "
            "ORDER BY recorded_at DESC, id DESC LIMIT 1",
            (device_id, metric),
        )
        return row_to_reading(row) if row else None

    async def latest_per_metric(self, device_id: str) -> List[Dict[str, Any]]:
        rows = await self.db.fetch_all(
            f"SELECT {READING_COLUMNS} FROM ("
            "  SELECT sr.*, ROW_NUMBER() OVER ("
            "    PARTITION BY metric ORDER BY recorded_at DESC, id DESC"
            "  ) AS rn FROM sensor_readings sr WHERE device_id = ?"
            ") ranked WHERE rn = 1 ORDER BY metric",
            (device_id,),
        )
        return [row_to_reading(r) for r in rows]

    # ── Device on/off state (latest "power" reading) ──

    async def device_state(self, device_id: str) -> Optional[int]:
        row = await self.db.fetch_one(
            "SELECT value FROM sensor_readings WHERE device_id = ? AND metric = ? "
            "ORDER BY recorded_at DESC, id DESC LIMIT 1",
            (device_id, DEFAULT_SENSOR_METRIC),
        )
        return binary_state(row["value"]) if row else None

    async def set_device_state(self, device_id: str, value: Any, recorded_at: Any = None) -> int:
        reading = await self.insert_reading(
            device_id, DEFAULT_SENSOR_METRIC, binary_state(value), recorded_at=recorded_at
        )
        return int(reading["value"])

    async def ensure_device_state_row(self, device_id: str) -> None:
        """Seed an ``off`` reading for a device that has none yet."""
        if await self.device_state(device_id) is not None:
            return
        try:
            await self.insert_reading(device_id, DEFAULT_SENSOR_METRIC, 0)
        except Exception as e:
            logger.warning("Seeding default state failed for %s: %s", device_id, e)

    async def device_states(self, ids: Optional[Iterable[str]] = None) -> Dict[str, Dict[str, Any]]:
        """Latest state per device; requested ids without readings are seeded off."""
        wanted = list(ids or [])
        sql = (
            "SELECT device_id, value, recorded_at FROM ("
            "  SELECT sr.*, ROW_NUMBER() OVER ("
            "    PARTITION BY device_id, metric ORDER BY recorded_at DESC, id DESC"
            "  ) AS rn FROM sensor_readings sr WHERE metric = ?"
            ") ranked WHERE rn = 1"
        )
        params: List[Any] = [DEFAULT_SENSOR_METRIC]
        if wanted:
            sql += f" AND device_id IN ({', '.join('?' for _ in wanted)})"
            params.extend(wanted)
        sql += " ORDER BY device_id"
        rows = await self.db.fetch_all(sql, params)
        states = {
            r["device_id"]: {"value": binary_state(r["value"]), "recordedAt": r["recorded_at"]}
            for r in rows
        }
        for device_id in wanted:
            if device_id not in states:
                await self.ensure_device_state_row(device_id)
                states[device_id] = {"value": 0, "recordedAt": utc_now_iso()}
        return states
