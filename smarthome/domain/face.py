"""Face template comparison.

Templates are JSON strings produced by the client, either
``{"hash": "..."}`` or ``{"vec": [floats]}``. Matching is a plain equality /
RMS-distance check, not a recognition model.
"""

import json
import math
from typing import Any, Dict, Optional, Union

MATCH_THRESHOLD = 0.12
FACE_ID_LENGTH = 16

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"

Template = Union[str, Dict[str, Any], None]


def _to_base36(n: int) -> str:
    if n == 0:
        return "0"
    digits = []
    while n:
        n, rem = divmod(n, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def hash_string(s: str) -> str:
    """djb2 over the string, wrapped to a signed 32-bit int, base 36."""
    h = 5381
    for ch in s:
        h = (h * 33 + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return _to_base36(abs(h))


def face_id_for(template: str) -> str:
    return hash_string(template)[:FACE_ID_LENGTH]


def parse_template(template: Template) -> Optional[Dict[str, Any]]:
    if isinstance(template, dict):
        return template
    if not isinstance(template, str):
        return None
    try:
        parsed = json.loads(template)
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


def match_templates(a: Template, b: Template) -> bool:
    ta = parse_template(a)
    tb = parse_template(b)
    if not ta or not tb:
        return False
    if ta.get("hash") and tb.get("hash"):
        return ta["hash"] == tb["hash"]
    va = ta.get("vec")
    vb = tb.get("vec")
    if not isinstance(va, list) or not isinstance(vb, list):
        return False
    if not va or len(va) != len(vb):
        return False
    try:
        total = sum((float(x) - float(y)) ** 2 for x, y in zip(va, vb))
    except (TypeError, ValueError):
        return False
    return math.sqrt(total / len(va)) < MATCH_THRESHOLD
