"""Google Gemini adapter using aiohttp: implements LLMPort."""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from smarthome.config import GeminiConfig
from smarthome.domain.models import ConversationTurn
from smarthome.errors import UpstreamError

logger = logging.getLogger(__name__)

# Gemini names the assistant side "model"
GEMINI_ROLES = {"user": "user", "assistant": "model"}


class GeminiAdapter:
    """Single-shot ``generateContent`` calls. No retries; failures raise UpstreamError."""

    def __init__(self, config: Optional[GeminiConfig] = None):
        self.config = config or GeminiConfig()

    @property
    def is_configured(self) -> bool:
        return bool(self.config.api_key)

    def build_body(self, prompt: str, history: List[ConversationTurn]) -> Dict[str, Any]:
        contents = [
            {"role": GEMINI_ROLES.get(turn.role, "user"), "parts": [{"text": turn.content}]}
            for turn in history
        ]
        contents.append({"role": "user", "parts": [{"text": prompt}]})
        return {
            "contents": contents,
            "generationConfig": {
                "temperature": self.config.temperature,
                "topP": self.config.top_p,
                "maxOutputTokens": self.config.max_output_tokens,
            },
        }

    @staticmethod
    def response_text(data: Any) -> str:
        """Text of the first candidate's first part."""
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            text = None
        if not text or not isinstance(text, str):
            raise UpstreamError("No response from Gemini")
        return text

    async def generate(self, prompt: str, history: List[ConversationTurn]) -> str:
        if not self.is_configured:
            raise UpstreamError("Gemini API key not configured on server")

        body = self.build_body(prompt, history)
        timeout = aiohttp.ClientTimeout(total=self.config.timeout_seconds)
        logger.info("Calling Gemini %s (%d history turns)", self.config.model, len(history))

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(
                    self.config.endpoint,
                    params={"key": self.config.api_key},
                    json=body,
                ) as resp:
                    if resp.status >= 400:
                        detail = await resp.text() or resp.reason or ""
                        raise UpstreamError(
                            f"Gemini error {resp.status}: {detail}",
                            status=resp.status,
                            body=detail,
                        )
                    data = await resp.json(content_type=None)
        except UpstreamError:
            raise
        except asyncio.TimeoutError as e:
            raise UpstreamError(f"Gemini timeout ({self.config.timeout_seconds}s)") from e
        except (aiohttp.ClientError, ValueError) as e:
            raise UpstreamError(f"Gemini request failed: {e}") from e

        return self.response_text(data)
