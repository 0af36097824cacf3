"""In-memory admin session store with TTL expiry."""

import logging
import secrets
import time
from typing import Callable, Dict, Optional

from smarthome.domain.models import AdminSession
from smarthome.errors import SmartHomeError

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TTL_SECONDS = 8 * 60 * 60


class SessionExpired(SmartHomeError):
    """Raised by lookup() when the token existed but outlived its TTL."""


class AdminSessionStore:
    """Bearer tokens for the admin console.

    Created once per app and reached through ``app.state``; tokens do not
    survive a restart.
    """

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._sessions: Dict[str, AdminSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self, user: dict) -> str:
        self.purge_expired()
        token = secrets.token_hex(32)
        self._sessions[token] = AdminSession(
            token=token,
            id=user["id"],
            email=user.get("email") or "",
            name=user.get("name") or "",
            created=self._clock(),
        )
        logger.info("Admin session created for %s", user.get("email"))
        return token

    def _is_expired(self, session: AdminSession) -> bool:
        return self._clock() - session.created > self.ttl_seconds

    def lookup(self, token: str) -> Optional[AdminSession]:
        """Return the live session for ``token`` or None if unknown.

        Expired sessions are removed and reported with SessionExpired.
        """
        session = self._sessions.get(token)
        if session is None:
            return None
        if self._is_expired(session):
            del self._sessions[token]
            raise SessionExpired("session expired")
        return session

    def revoke(self, token: str) -> bool:
        return self._sessions.pop(token, None) is not None

    def purge_expired(self) -> int:
        expired = [t for t, s in self._sessions.items() if self._is_expired(s)]
        for token in expired:
            del self._sessions[token]
        if expired:
            logger.info("Purged %d expired admin session(s)", len(expired))
        return len(expired)
