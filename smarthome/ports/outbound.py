"""Outbound ports: interfaces for external system adapters."""

from typing import List, Optional, Protocol, runtime_checkable

from smarthome.domain.models import AdminSession, ConversationTurn


@runtime_checkable
class LLMPort(Protocol):
    """Text generation backend: prompt plus prior turns in, free text out."""

    async def generate(self, prompt: str, history: List[ConversationTurn]) -> str: ...


@runtime_checkable
class SessionStorePort(Protocol):
    """Interface for admin session storage."""

    def create(self, user: dict) -> str: ...
    def lookup(self, token: str) -> Optional[AdminSession]: ...
    def revoke(self, token: str) -> bool: ...
