"""LLM adapters."""

from smarthome.adapters.llm.gemini_adapter import GeminiAdapter

__all__ = ["GeminiAdapter"]
