"""Domain data models: pure Python dataclasses."""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

ACTIONS = (
    "door.lock",
    "door.unlock",
    "door.lock_all",
    "door.unlock_all",
    "device.set",
    "none",
)

ROLES = ("admin", "parent", "member")


@dataclass
class ConversationTurn:
    """One prior message forwarded to the model as context."""

    role: str  # "user" | "assistant"
    content: str


@dataclass
class Extraction:
    """Command payload recovered from model text, plus the speakable rest."""

    payload: Optional[Dict[str, Any]]
    remainder: str


@dataclass
class AssistantReply:
    action: str
    say: str
    room: Optional[str] = None
    device: Optional[str] = None
    value: Optional[str] = None
    door: Optional[str] = None
    raw: str = ""

    def to_response(self) -> Dict[str, Any]:
        """Public fields only; ``raw`` stays server-side."""
        data = asdict(self)
        data.pop("raw")
        return data


@dataclass
class AdminSession:
    token: str
    id: int
    email: str
    name: str
    created: float  # time.time() at login
