"""Tests for VoiceAssistant with a stubbed LLM."""

import pytest

from smarthome.domain.assistant import VoiceAssistant
from smarthome.domain.models import ConversationTurn
from smarthome.errors import UpstreamError
from smarthome.ports.outbound import LLMPort


class StubLLM:
    def __init__(self, reply="", error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    async def generate(self, prompt, history):
        self.calls.append((prompt, history))
        if self.error:
            raise self.error
        return self.reply


def test_stub_satisfies_port():
    assert isinstance(StubLLM(), LLMPort)


@pytest.mark.asyncio
async def test_reply_from_trailing_command():
    llm = StubLLM(
        reply='Okay.\n{"action":"door.lock_all","door":"*","say":"Locking all doors."}'
    )
    reply = await VoiceAssistant(llm).get_reply("lock everything")
    assert reply.action == "door.lock_all"
    assert reply.door == "*"
    assert reply.say == "Locking all doors."
    assert reply.raw.startswith("Okay.")


@pytest.mark.asyncio
async def test_prompt_and_history_forwarded():
    llm = StubLLM(reply="Hello!")
    history = [{"role": "user", "content": str(i)} for i in range(10)] + [{"role": "bot"}]
    await VoiceAssistant(llm).get_reply("hi there", history)

    prompt, turns = llm.calls[0]
    assert prompt.endswith("User: hi there")
    assert len(turns) == 8
    assert all(isinstance(t, ConversationTurn) for t in turns)
    assert turns[-1].content == "9"


@pytest.mark.asyncio
async def test_plain_answer_uses_none_action():
    llm = StubLLM(reply="Paris is the capital of France.")
    reply = await VoiceAssistant(llm).get_reply("capital of France?")
    assert reply.action == "none"
    assert reply.say == "Paris is the capital of France."


@pytest.mark.asyncio
async def test_upstream_error_propagates():
    llm = StubLLM(error=UpstreamError("Gemini error 500: boom", status=500))
    with pytest.raises(UpstreamError, match="500"):
        await VoiceAssistant(llm).get_reply("hello")
    assert len(llm.calls) == 1
