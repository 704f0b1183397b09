"""Entry point for serving the Event Registration API.

Host and port come from the ``API_HOST`` and ``API_PORT`` environment
variables (defaults ``0.0.0.0`` and ``8000``); all other configuration
is read by ``event_registration_api.app.core.config``.

Usage:
    python run.py
"""
import asyncio
import os

from uvicorn import Config, Server

from event_registration_api.app.core.config import settings
from event_registration_api.app.main import app


async def run_api() -> None:
    """Serve the API with Uvicorn until interrupted."""
    host = os.getenv("API_HOST", "0.0.0.0")
    port = int(os.getenv("API_PORT", "8000"))
    config = Config(app=app, host=host, port=port, reload=False, log_level=settings.log_level.lower())
    server = Server(config)
    await server.serve()


async def main() -> None:
    await run_api()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, SystemExit):
        pass
