"""Sensor reading ingest/query and on/off device state routes."""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from smarthome.adapters.web.state import AppState, get_state, require_device_secret
from smarthome.domain.sensors import (
    DEFAULT_SENSOR_METRIC,
    clamp_limit,
    parse_timestamp,
    to_number,
)
from smarthome.errors import ValidationError

logger = logging.getLogger(__name__)

sensor_router = APIRouter(prefix="/api", tags=["Sensors"])


class ReadingRequest(BaseModel):
    metric: Optional[Any] = None
    value: Any = None
    unit: Optional[str] = None
    recordedAt: Any = None
    metadata: Any = None


class DeviceStateRequest(BaseModel):
    value: Any = None
    recordedAt: Any = None


def _device_id(raw: str) -> str:
    device_id = (raw or "").strip()
    if not device_id:
        raise HTTPException(status_code=400, detail="deviceId required")
    return device_id


def _query_time(raw: Optional[str], name: str):
    if not raw:
        return None
    try:
        return parse_timestamp(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"invalid {name}")


@sensor_router.post(
    "/sensors/{device_id}/readings",
    dependencies=[Depends(require_device_secret)],
)
async def ingest_reading(
    device_id: str,
    req: ReadingRequest,
    state: AppState = Depends(get_state),
):
    """Store one reading posted by a hardware device."""
    device_id = _device_id(device_id)
    metric = req.metric if isinstance(req.metric, str) and req.metric.strip() else DEFAULT_SENSOR_METRIC
    value = to_number(req.value)
    if value is None:
        raise HTTPException(status_code=400, detail="numeric value required")
    try:
        reading = await state.sensors.insert_reading(
            device_id,
            metric,
            value,
            unit=req.unit,
            metadata=req.metadata,
            recorded_at=req.recordedAt,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error("Sensor ingest failed for %s: %s", device_id, e)
        raise HTTPException(status_code=500, detail=str(e) or "sensor ingest failed")
    return {"success": True, "reading": reading}


@sensor_router.get("/sensors/{device_id}/readings")
async def reading_history(
    device_id: str,
    metric: Optional[str] = None,
    limit: Optional[str] = None,
    since: Optional[str] = None,
    until: Optional[str] = None,
    state: AppState = Depends(get_state),
):
    device_id = _device_id(device_id)
    since_ts = _query_time(since, "since")
    until_ts = _query_time(until, "until")
    try:
        readings = await state.sensors.history(
            device_id,
            metric=metric,
            since=since_ts,
            until=until_ts,
            limit=clamp_limit(limit),
        )
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e) or "sensor history failed")
    return {
        "deviceId": device_id,
        "metric": metric or None,
        "count": len(readings),
        "readings": readings,
    }


@sensor_router.get("/sensors/{device_id}/readings/latest")
async def latest_readings(
    device_id: str,
    metric: Optional[str] = None,
    state: AppState = Depends(get_state),
):
    """Latest reading for one metric, or the latest of every metric."""
    device_id = _device_id(device_id)
    try:
        if metric:
            reading = await state.sensors.latest(device_id, metric)
        else:
            readings = await state.sensors.latest_per_metric(device_id)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e) or "latest readings failed")
    if metric:
        if reading is None:
            raise HTTPException(status_code=404, detail="no reading found")
        return {"reading": reading}
    if not readings:
        raise HTTPException(status_code=404, detail="no readings found")
    return {"readings": readings}


@sensor_router.post(
    "/devices/{device_id}/state",
    dependencies=[Depends(require_device_secret)],
)
async def set_device_state(
    device_id: str,
    req: DeviceStateRequest,
    state: AppState = Depends(get_state),
):
    device_id = _device_id(device_id)
    if to_number(req.value) is None:
        raise HTTPException(status_code=400, detail="numeric value required")
    try:
        value = await state.sensors.set_device_state(device_id, req.value, req.recordedAt)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e) or "device state update failed")
    return {"success": True, "deviceId": device_id, "value": value}


@sensor_router.get("/devices/state")
async def device_states(ids: Optional[str] = None, state: AppState = Depends(get_state)):
    """States for all devices, or only the comma-separated ``ids``."""
    wanted = [s.strip() for s in ids.split(",") if s.strip()] if ids else None
    try:
        states = await state.sensors.device_states(wanted)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e) or "device states query failed")
    return {"states": states}


@sensor_router.get("/devices/{device_id}/state")
async def device_state(device_id: str, state: AppState = Depends(get_state)):
    device_id = _device_id(device_id)
    try:
        value = await state.sensors.device_state(device_id)
        if value is None:
            await state.sensors.ensure_device_state_row(device_id)
            value = 0
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e) or "device state query failed")
    return {"deviceId": device_id, "value": value}
