"""Per-member access policies (which controls and rooms a member may use)."""

import json
from typing import Any, Dict, Optional

AREAS = ("hall", "kitchen", "bedroom", "bathroom")
AREA_DEVICES = ("light", "fan", "ac", "door")


def default_policies(role: str) -> Dict[str, Any]:
    """Parents and admins get full access; members may not unlock doors or
    touch room devices."""
    full = role in ("parent", "admin")
    areas: Dict[str, Dict[str, bool]] = {
        area: {device: full for device in AREA_DEVICES} for area in AREAS
    }
    areas["main"] = {"door": full}
    return {
        "controls": {
            "devices": True,
            "doors": True,
            "unlockDoors": full,
            "voice": True,
            "power": True,
        },
        "areas": areas,
    }


def normalize_policies(role: str, policies: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Overlay stored policies on the role defaults, area by area."""
    defaults = default_policies(role)
    if not policies:
        return defaults
    controls = dict(defaults["controls"])
    controls.update(policies.get("controls") or {})

    default_areas = defaults["areas"]
    provided_areas = policies.get("areas") or {}
    areas: Dict[str, Dict[str, Any]] = {}
    for key in list(default_areas) + [k for k in provided_areas if k not in default_areas]:
        base = default_areas.get(key, {})
        merged = dict(base)
        merged.update(provided_areas.get(key) or {})
        if "fan" in base and merged.get("fan") is None:
            merged["fan"] = base["fan"]
        areas[key] = merged
    return {"controls": controls, "areas": areas}


def load_policies(role: str, raw: Optional[str]) -> Dict[str, Any]:
    """Normalize a policies column value; unreadable JSON falls back to defaults."""
    if not raw:
        return default_policies(role)
    try:
        stored = json.loads(raw)
    except ValueError:
        return default_policies(role)
    return normalize_policies(role, stored if isinstance(stored, dict) else None)
