"""ASGI entry point: ``uvicorn smarthome.app:app`` or ``python -m smarthome``."""

import uvicorn

from smarthome.adapters.web.server import create_app
from smarthome.config import AppConfig
from smarthome.logging_setup import configure_logging

config = AppConfig.from_env()
configure_logging(config.log_level)

app = create_app(config)


def main() -> None:
    uvicorn.run(app, host="0.0.0.0", port=config.port, log_level=config.log_level.lower())


if __name__ == "__main__":
    main()
