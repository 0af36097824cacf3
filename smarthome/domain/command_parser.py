"""Command extraction from free-form assistant replies.

The model is asked to end every reply with a one-line JSON command, but its
output is not guaranteed: the JSON may be fenced, prefixed with a ``json``
label, followed by prose, or not valid JSON at all. ``extract`` recovers the
command through an ordered fallback chain and never raises:

1. the last balanced ``{...}`` span mentioning ``"action":``, parsed strictly;
2. loose ``"key":"value"`` pairs on the last non-empty line;
3. loose pairs over the whole text, when ``"action":`` appears anywhere.

Whatever path wins, trailing command debris (fences, partial JSON) is
trimmed from the remainder so raw command syntax is never spoken.

Pure Python, no framework dependencies.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple

from smarthome.domain.models import ACTIONS, AssistantReply, ConversationTurn, Extraction

MAX_HISTORY_TURNS = 8
HISTORY_ROLES = ("user", "assistant")
REPLY_FIELDS = ("room", "device", "value", "door")

ACTION_KEY_RE = re.compile(r'"action"\s*:', re.IGNORECASE)
SAY_KEY_RE = re.compile(r'"say"\s*:', re.IGNORECASE)

# "key":"value", "key" "value", or key:"value" (bare keys only on an action line)
LOOSE_PAIR_RE = re.compile(
    r'(?:"([a-zA-Z0-9_.-]+)"\s*:?\s*|\b([a-zA-Z0-9_.-]+)\s*:\s*)"([^"\n]*)"'
)

_FENCE_OPEN_RE = re.compile(r"^```(?:json)?", re.IGNORECASE)
_FENCE_CLOSE_RE = re.compile(r"```\Z")
_JSON_LABEL_RE = re.compile(r"^json\b[\s:=-]*", re.IGNORECASE)
_BACKTICKS_RE = re.compile(r"^`+|`+\Z")
_MARKER_LINE_RE = re.compile(r"^(?:```|json\b)", re.IGNORECASE)
_BARE_ACTION_LINE_RE = re.compile(r"^action\s*:", re.IGNORECASE)

_DOOR_SCHEMA = (
    '{"action":"'
    + "|".join(a for a in ACTIONS if a.startswith("door."))
    + '","door":"main|front|back|garage|bathroom|room1|hall|kitchen|bedroom|*","say":"..."}'
)

PROMPT_PREAMBLE = """You are the Smart Home voice assistant.
You can answer general questions and also control doors and devices. Always end your reply with a single JSON command on the last line only.

If the user is asking a general question, use the 'none' action.

Supported JSON schema (choose one):
- """ + _DOOR_SCHEMA + """
- {"action":"device.set","room":"hall|kitchen|bedroom|bathroom|room1","device":"light|ac|fan","value":"on|off","say":"..."}
- {"action":"none","say":"..."}

Rules:
- Only output one JSON object on the last line (no code fences, no extra text after it).
- Do not prefix the JSON with words like json or wrap it in any quotes or fences.
- For "home light" assume room=hall.
- For generic lights with no room specified, prefer room=hall."""


@dataclass
class JsonBlock:
    """A balanced brace span located in model text."""

    json: str
    start: int
    end: int


# ── Prompt assembly ──────────────────────────────────────


def build_prompt(user_text: str) -> str:
    """Fixed instruction preamble followed by the user's current text."""
    return f"{PROMPT_PREAMBLE}\n\nUser: {user_text}"


def normalize_history(history: Any) -> List[ConversationTurn]:
    """Keep well-formed turns only, then the most recent ``MAX_HISTORY_TURNS``.

    Malformed entries are dropped, not rejected.
    """
    if not isinstance(history, (list, tuple)):
        return []
    turns: List[ConversationTurn] = []
    for item in history:
        if isinstance(item, ConversationTurn):
            role, content = item.role, item.content
        elif isinstance(item, dict):
            role, content = item.get("role"), item.get("content")
        else:
            continue
        if role in HISTORY_ROLES and isinstance(content, str):
            turns.append(ConversationTurn(role=role, content=content))
    return turns[-MAX_HISTORY_TURNS:]


# ── Extraction ──────────────────────────────────────


def sanitize_json_candidate(candidate: str = "") -> str:
    """Strip code fences, a leading ``json`` label and stray backticks."""
    cleaned = _FENCE_OPEN_RE.sub("", candidate)
    cleaned = _FENCE_CLOSE_RE.sub("", cleaned)
    cleaned = _JSON_LABEL_RE.sub("", cleaned)
    cleaned = _BACKTICKS_RE.sub("", cleaned)
    return cleaned.strip()


def parse_loose_key_values(candidate: str = "") -> Optional[Dict[str, str]]:
    """Scrape quoted key/value pairs from text that is not valid JSON.

    Returns None unless the pairs include an ``action`` or ``say`` key.
    Unquoted keys count only when the candidate starts with ``action:``.
    Later duplicates win.
    """
    cleaned = sanitize_json_candidate(candidate)
    if not cleaned:
        return None
    allow_bare = bool(_BARE_ACTION_LINE_RE.match(cleaned))
    result: Dict[str, str] = {}
    for quoted_key, bare_key, value in LOOSE_PAIR_RE.findall(cleaned):
        if bare_key and not allow_bare:
            continue
        result[quoted_key or bare_key] = value
    if not result.get("action") and not result.get("say"):
        return None
    return result


def _matching_brace(text: str, start: int) -> Optional[int]:
    """Index just past the brace closing ``text[start]``, or None if unbalanced."""
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i + 1
    return None


def iter_brace_spans(text: str) -> Iterator[Tuple[int, int]]:
    """Yield ``(start, end)`` of each balanced top-level ``{...}`` span.

    An opening brace that never closes is skipped so spans nested after it
    are still found.
    """
    pos = text.find("{")
    while pos != -1:
        end = _matching_brace(text, pos)
        if end is None:
            pos = text.find("{", pos + 1)
        else:
            yield pos, end
            pos = text.find("{", end)


def find_json_command_block(text: str = "") -> Optional[JsonBlock]:
    """Last brace span that mentions an ``"action":`` key."""
    found = None
    for start, end in iter_brace_spans(text):
        span = text[start:end]
        if ACTION_KEY_RE.search(span):
            found = JsonBlock(json=span, start=start, end=end)
    return found


def _is_artifact_line(line: str) -> bool:
    trimmed = line.strip()
    if not trimmed:
        return True
    cleaned = sanitize_json_candidate(trimmed)
    if not cleaned:
        return True
    if ACTION_KEY_RE.search(cleaned) or SAY_KEY_RE.search(cleaned):
        return True
    return bool(_MARKER_LINE_RE.match(trimmed))


def strip_command_artifacts(text: str = "") -> str:
    """Drop trailing lines that are blank, fences, labels or command debris."""
    lines = text.split("\n")
    while lines and _is_artifact_line(lines[-1]):
        lines.pop()
    return "\n".join(lines).strip()


def _parse_strict(candidate: str) -> Optional[Dict[str, Any]]:
    try:
        parsed = json.loads(candidate)
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


def extract(raw_text: str = "") -> Extraction:
    """Split model output into an optional command payload and spoken remainder."""
    trimmed = (raw_text or "").strip()
    if not trimmed:
        return Extraction(payload=None, remainder="")

    payload: Optional[Dict[str, Any]] = None
    remainder = trimmed

    block = find_json_command_block(trimmed)
    if block:
        payload = _parse_strict(sanitize_json_candidate(block.json))
        if payload is not None:
            remainder = (trimmed[: block.start] + trimmed[block.end :]).strip()

    if payload is None:
        lines = [line for line in trimmed.split("\n") if line.strip()]
        last_line = lines[-1] if lines else ""
        loose = parse_loose_key_values(last_line) if last_line else None
        if loose:
            payload = loose
            idx = trimmed.rfind(last_line)
            if idx >= 0:
                remainder = (trimmed[:idx] + trimmed[idx + len(last_line) :]).strip()

    if payload is None and ACTION_KEY_RE.search(trimmed):
        # Known limitation: pairs may come from unrelated fragments.
        loose = parse_loose_key_values(trimmed)
        if loose:
            payload = loose
            remainder = strip_command_artifacts(trimmed)

    return Extraction(payload=payload, remainder=strip_command_artifacts(remainder))


# ── Reply composition ──────────────────────────────────────


def _nonblank_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def compose_reply(raw_text: str, extraction: Extraction) -> AssistantReply:
    """Build the caller-facing reply; ``say`` and ``action`` are never empty
    for non-blank input."""
    payload = extraction.payload or {}
    say = (
        _nonblank_str(payload.get("say"))
        or extraction.remainder
        or (raw_text or "").strip()
    )
    action = _nonblank_str(payload.get("action")) or "none"
    fields = {
        name: payload[name].strip()
        for name in REPLY_FIELDS
        if isinstance(payload.get(name), str)
    }
    return AssistantReply(action=action, say=say, raw=raw_text, **fields)


def extract_reply(raw_text: str) -> AssistantReply:
    return compose_reply(raw_text, extract(raw_text))
