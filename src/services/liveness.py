# src/services/liveness.py

"""Uptime-ping HTTP endpoint."""

import logging

import uvicorn
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from src.config.settings import Settings

logger = logging.getLogger("stockwatch.liveness")


def create_app(body: str | None = None) -> FastAPI:
    """Build the app answering ``GET /`` with a static 200 body."""
    text = body if body is not None else Settings.LIVENESS_BODY
    app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)

    @app.get("/", response_class=PlainTextResponse)
    async def ping() -> str:
        return text

    return app


def build_server(port: int | None = None) -> uvicorn.Server:
    """Create a uvicorn server to be awaited inside the bot's event loop."""
    config = uvicorn.Config(
        create_app(),
        host="0.0.0.0",
        port=port or Settings.PORT,
        log_level="warning",
        access_log=False,
    )
    server = uvicorn.Server(config)
    logger.info("Liveness endpoint configured on port %d", config.port)
    return server
