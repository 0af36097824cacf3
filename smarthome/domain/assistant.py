"""Voice assistant: one LLM call per utterance, command recovered from the reply."""

import logging
from typing import Any

from smarthome.domain.command_parser import (
    build_prompt,
    compose_reply,
    extract,
    normalize_history,
)
from smarthome.domain.models import AssistantReply
from smarthome.ports.outbound import LLMPort

logger = logging.getLogger(__name__)


class VoiceAssistant:
    """Turns user text plus conversation history into an AssistantReply.

    Upstream errors from the LLM propagate unchanged; malformed model output
    never does.
    """

    def __init__(self, llm: LLMPort):
        self.llm = llm

    async def get_reply(self, user_text: str, history: Any = None) -> AssistantReply:
        turns = normalize_history(history)
        raw = await self.llm.generate(build_prompt(user_text), turns)
        extraction = extract(raw)
        if extraction.payload is None:
            logger.warning("No command recovered from assistant reply (%d chars)", len(raw))
        reply = compose_reply(raw, extraction)
        logger.info("Assistant action=%s", reply.action)
        return reply
