"""Smart home backend: members, doors, sensors and the voice assistant bridge."""

from smarthome.config import CONFIG, AppConfig, __version__
from smarthome.domain.command_parser import compose_reply, extract
from smarthome.domain.models import AssistantReply, ConversationTurn, Extraction
from smarthome.errors import SmartHomeError, UpstreamError, ValidationError

__all__ = [
    "CONFIG",
    "AppConfig",
    "__version__",
    "extract",
    "compose_reply",
    "AssistantReply",
    "ConversationTurn",
    "Extraction",
    "SmartHomeError",
    "UpstreamError",
    "ValidationError",
]
