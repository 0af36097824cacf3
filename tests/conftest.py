"""Shared fixtures: an app wired to a temp database and a fake LLM."""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from smarthome.adapters.storage.database import Database
from smarthome.adapters.web.server import create_app
from smarthome.config import AdminConfig, AppConfig, DatabaseConfig, GeminiConfig

ADMIN_EMAIL = "admin@example.com"
ADMIN_PIN = "123456"


class FakeLLM:
    """LLMPort stand-in; returns ``reply`` or raises ``error``."""

    def __init__(self):
        self.reply = ""
        self.error = None
        self.calls = []

    async def generate(self, prompt, history):
        self.calls.append((prompt, history))
        if self.error:
            raise self.error
        return self.reply


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def app_config(tmp_path):
    return AppConfig(
        gemini=GeminiConfig(api_key=""),
        database=DatabaseConfig(path=str(tmp_path / "smarthome.db")),
        admin=AdminConfig(
            super_admin_name="Root",
            super_admin_email=ADMIN_EMAIL,
            super_admin_pin=ADMIN_PIN,
            console_root=str(tmp_path / "missing"),
        ),
    )


@pytest_asyncio.fixture
async def app(app_config, fake_llm):
    # ASGITransport does not run lifespan events
    application = create_app(app_config, llm=fake_llm)
    await application.state.smarthome.startup()
    yield application
    await application.state.smarthome.shutdown()


@pytest_asyncio.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def db(tmp_path):
    database = Database(str(tmp_path / "repo.db"))
    await database.connect()
    yield database
    await database.close()


@pytest_asyncio.fixture
async def admin_headers(client):
    resp = await client.post("/api/admin/login", json={"email": ADMIN_EMAIL, "pin": ADMIN_PIN})
    return {"Authorization": f"Bearer {resp.json()['token']}"}
