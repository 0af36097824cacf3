"""Configuration and shared settings."""

__version__ = "0.1.0"

import os
import sys
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()

_stderr_print = lambda *a, **kw: print(*a, **kw, file=sys.stderr)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        _stderr_print(f"Invalid {name}={raw!r}, falling back to {default}")
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        _stderr_print(f"Invalid {name}={raw!r}, falling back to {default}")
        return default


GEMINI_DEFAULT_MODEL = "gemini-1.5-flash"
GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"

CONFIG = {
    "port": _env_int("PORT", 8080),
    "log_level": os.getenv("LOG_LEVEL", "INFO").strip().upper(),
    # Storage
    "database_path": os.getenv("DATABASE_PATH", "data/smarthome.db"),
    # Gemini
    "gemini_api_key": os.getenv("GEMINI_API_KEY", ""),
    "gemini_model": os.getenv("GEMINI_MODEL", GEMINI_DEFAULT_MODEL).strip() or GEMINI_DEFAULT_MODEL,
    "gemini_timeout_seconds": _env_float("GEMINI_TIMEOUT_SECONDS", 30.0),
    # Hardware devices posting readings; empty disables the check
    "sensor_shared_secret": os.getenv("SENSOR_SHARED_SECRET", ""),
    # Super admin bootstrap (skipped when email or pin is empty)
    "super_admin_name": os.getenv("SUPER_ADMIN_NAME", "Admin User"),
    "super_admin_email": os.getenv("SUPER_ADMIN_EMAIL", ""),
    "super_admin_pin": os.getenv("SUPER_ADMIN_PIN", ""),
    "admin_session_ttl_seconds": _env_int("ADMIN_SESSION_TTL_SECONDS", 8 * 60 * 60),
    "admin_console_root": os.getenv("ADMIN_CONSOLE_ROOT", "public/admin"),
}


# ── Typed config ──────────────────────────────────────


@dataclass
class GeminiConfig:
    api_key: str = ""
    model: str = GEMINI_DEFAULT_MODEL
    timeout_seconds: float = 30.0
    temperature: float = 0.6
    top_p: float = 0.9
    max_output_tokens: int = 256

    @property
    def endpoint(self) -> str:
        return f"{GEMINI_API_BASE}/{self.model}:generateContent"


@dataclass
class DatabaseConfig:
    path: str = "data/smarthome.db"


@dataclass
class AdminConfig:
    super_admin_name: str = "Admin User"
    super_admin_email: str = ""
    super_admin_pin: str = ""
    session_ttl_seconds: int = 8 * 60 * 60
    console_root: str = "public/admin"


@dataclass
class AppConfig:
    """Typed configuration passed to the app factory."""

    port: int = 8080
    log_level: str = "INFO"
    sensor_shared_secret: str = ""
    gemini: GeminiConfig = field(default_factory=GeminiConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    admin: AdminConfig = field(default_factory=AdminConfig)

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create AppConfig from environment variables."""
        return cls(
            port=CONFIG["port"],
            log_level=CONFIG["log_level"],
            sensor_shared_secret=CONFIG["sensor_shared_secret"],
            gemini=GeminiConfig(
                api_key=CONFIG["gemini_api_key"],
                model=CONFIG["gemini_model"],
                timeout_seconds=CONFIG["gemini_timeout_seconds"],
            ),
            database=DatabaseConfig(path=CONFIG["database_path"]),
            admin=AdminConfig(
                super_admin_name=CONFIG["super_admin_name"],
                super_admin_email=CONFIG["super_admin_email"],
                super_admin_pin=CONFIG["super_admin_pin"],
                session_ttl_seconds=CONFIG["admin_session_ttl_seconds"],
                console_root=CONFIG["admin_console_root"],
            ),
        )
