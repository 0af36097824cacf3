"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.responses import RedirectResponse
from fastapi.staticfiles import StaticFiles

from smarthome.adapters.web.admin_routes import admin_router
from smarthome.adapters.web.assistant_routes import assistant_router
from smarthome.adapters.web.door_routes import door_router
from smarthome.adapters.web.member_routes import member_router
from smarthome.adapters.web.sensor_routes import sensor_router
from smarthome.adapters.web.state import AppState
from smarthome.config import AppConfig, __version__
from smarthome.ports.outbound import LLMPort, SessionStorePort

logger = logging.getLogger(__name__)

ADMIN_CONSOLE_PREFIX = "/admin/console"


def create_app(
    config: Optional[AppConfig] = None,
    llm: Optional[LLMPort] = None,
    sessions: Optional[SessionStorePort] = None,
) -> FastAPI:
    """Build the app. ``llm`` overrides the Gemini adapter; ``sessions`` the
    in-memory admin session store."""
    config = config or AppConfig.from_env()
    state = AppState(config, llm=llm, sessions=sessions)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Smart home backend starting on :%d", config.port)
        await state.startup()
        if not config.gemini.api_key:
            logger.warning("GEMINI_API_KEY not set; /api/assistant will return 502")
        logger.info("Ready")
        yield
        await state.shutdown()

    app = FastAPI(title="Smart Home Backend", version=__version__, lifespan=lifespan)
    app.state.smarthome = state

    app.include_router(assistant_router)
    app.include_router(member_router)
    app.include_router(door_router)
    app.include_router(sensor_router)
    app.include_router(admin_router)

    console_root = Path(config.admin.console_root)
    if console_root.is_dir():
        app.mount(
            ADMIN_CONSOLE_PREFIX,
            StaticFiles(directory=str(console_root), html=True),
            name="admin-console",
        )
    else:
        logger.info("Admin console not found at %s; static files disabled", console_root)

    @app.get("/admin", include_in_schema=False)
    async def admin_console_redirect():
        return RedirectResponse(url=f"{ADMIN_CONSOLE_PREFIX}/")

    return app
