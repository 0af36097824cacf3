"""Domain layer: pure Python, no framework dependencies."""

from smarthome.domain.models import AdminSession, AssistantReply, ConversationTurn, Extraction
from smarthome.domain.command_parser import compose_reply, extract, normalize_history
from smarthome.domain.assistant import VoiceAssistant

__all__ = [
    "AdminSession",
    "AssistantReply",
    "ConversationTurn",
    "Extraction",
    "VoiceAssistant",
    "compose_reply",
    "extract",
    "normalize_history",
]
