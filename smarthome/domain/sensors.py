"""Sensor reading helpers: timestamps, metadata and row mapping."""

import json
import math
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

DEFAULT_SENSOR_METRIC = "power"
DEFAULT_HISTORY_LIMIT = 50
MAX_HISTORY_LIMIT = 500

Timestamp = Union[str, int, float, datetime, None]


def format_timestamp(dt: datetime) -> str:
    """UTC ISO-8601 with millisecond precision, e.g. ``2024-01-02T03:04:05.678Z``.

    Fixed width so stored values sort lexicographically.
    """
    dt = dt.astimezone(timezone.utc) if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def utc_now_iso() -> str:
    return format_timestamp(datetime.now(timezone.utc))


def parse_timestamp(value: Timestamp) -> datetime:
    """ISO-8601 string, epoch milliseconds or datetime; None means now.

    Raises ValueError for anything unparseable.
    """
    if value is None or value == "":
        return datetime.now(timezone.utc)
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, bool):
        raise ValueError(f"invalid timestamp: {value!r}")
    elif isinstance(value, (int, float)):
        if not math.isfinite(value):
            raise ValueError(f"invalid timestamp: {value!r}")
        try:
            dt = datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError) as e:
            raise ValueError(f"invalid timestamp: {value!r}") from e
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    else:
        raise ValueError(f"invalid timestamp: {value!r}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def to_number(value: Any) -> Optional[float]:
    """Numeric coercion for posted values; None when not a finite number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def normalize_metadata(metadata: Any) -> Optional[str]:
    """Serialize metadata for storage. JSON strings are re-encoded as-is,
    other strings are stored as JSON string literals."""
    if metadata is None:
        return None
    if isinstance(metadata, str):
        try:
            return json.dumps(json.loads(metadata))
        except ValueError:
            return json.dumps(metadata)
    try:
        return json.dumps(metadata)
    except (TypeError, ValueError):
        return None


def decode_metadata(raw: Any) -> Any:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    if isinstance(raw, str) and raw:
        try:
            return json.loads(raw)
        except ValueError:
            return raw
    return raw


def row_to_reading(row: Dict[str, Any]) -> Dict[str, Any]:
    value = row["value"]
    return {
        "id": row["id"],
        "deviceId": row["device_id"],
        "metric": row["metric"],
        "value": value if isinstance(value, (int, float)) else to_number(value),
        "unit": row["unit"],
        "metadata": decode_metadata(row["metadata"]),
        "recordedAt": row["recorded_at"],
    }


def clamp_limit(raw: Optional[str]) -> int:
    """Parse a ``limit`` query value into ``[1, MAX_HISTORY_LIMIT]``."""
    number = to_number(raw) if raw not in (None, "") else None
    if not number:
        number = DEFAULT_HISTORY_LIMIT
    return int(min(max(number, 1), MAX_HISTORY_LIMIT))


def binary_state(value: Any) -> int:
    number = to_number(value)
    return 1 if number else 0
