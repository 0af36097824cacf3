"""Per-app state container and FastAPI dependencies."""

import hmac
import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request

from smarthome.adapters.llm.gemini_adapter import GeminiAdapter
from smarthome.adapters.storage.database import Database
from smarthome.adapters.storage.doors import DoorRepository
from smarthome.adapters.storage.sensors import SensorRepository
from smarthome.adapters.storage.users import UserRepository
from smarthome.config import AppConfig
from smarthome.domain.assistant import VoiceAssistant
from smarthome.domain.models import AdminSession
from smarthome.infrastructure.sessions import AdminSessionStore, SessionExpired
from smarthome.ports.outbound import LLMPort, SessionStorePort

logger = logging.getLogger(__name__)


class AppState:
    """All subsystems for one app instance; stored on ``app.state.smarthome``."""

    def __init__(
        self,
        config: AppConfig,
        llm: Optional[LLMPort] = None,
        sessions: Optional[SessionStorePort] = None,
    ):
        self.config = config
        self.db = Database(config.database.path)
        self.users = UserRepository(self.db)
        self.doors = DoorRepository(self.db)
        self.sensors = SensorRepository(self.db)
        if sessions is None:
            sessions = AdminSessionStore(ttl_seconds=config.admin.session_ttl_seconds)
        self.sessions: SessionStorePort = sessions
        self.assistant = VoiceAssistant(llm or GeminiAdapter(config.gemini))

    async def startup(self) -> None:
        await self.db.connect()
        admin = self.config.admin
        try:
            await self.users.ensure_super_admin(
                admin.super_admin_name, admin.super_admin_email, admin.super_admin_pin
            )
        except Exception as e:
            logger.error("Failed to ensure super admin: %s", e)

    async def shutdown(self) -> None:
        await self.db.close()


def get_state(request: Request) -> AppState:
    return request.app.state.smarthome


def require_device_secret(request: Request, state: AppState = Depends(get_state)) -> None:
    """Hardware ingest check; disabled when no shared secret is configured."""
    secret = state.config.sensor_shared_secret
    if not secret:
        return
    provided = (
        request.headers.get("x-device-secret")
        or request.headers.get("x-sensor-secret")
        or request.query_params.get("secret")
        or ""
    )
    if not provided or not hmac.compare_digest(provided.encode(), secret.encode()):
        raise HTTPException(status_code=401, detail="unauthorized device")


def require_admin(
    authorization: str = Header(default=""),
    state: AppState = Depends(get_state),
) -> AdminSession:
    token = authorization[len("Bearer "):] if authorization.startswith("Bearer ") else ""
    if not token:
        raise HTTPException(status_code=401, detail="admin auth required")
    try:
        session = state.sessions.lookup(token)
    except SessionExpired:
        raise HTTPException(status_code=401, detail="session expired")
    if session is None:
        raise HTTPException(status_code=401, detail="admin auth required")
    return session
