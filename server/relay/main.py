"""FastAPI application entrypoint for the assistant relay."""
from __future__ import annotations

import logging

from fastapi import FastAPI

from . import __version__
from .config import settings
from .routers import chat

logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Instantiate and configure the FastAPI application."""
    application = FastAPI(
        title="Assistant Relay",
        description=(
            "Answers one user message per request by driving an OpenAI assistant "
            "thread, message and run to completion."
        ),
        version=__version__,
    )
    application.include_router(chat.router)

    @application.get("/")
    async def root() -> dict[str, str]:
        """Lightweight health endpoint for service discovery."""
        return {"service": "assistant-relay", "status": "ok"}

    logger.info(
        "Assistant relay %s ready (assistant configured=%s, poll every %ss, run timeout %ss)",
        __version__,
        bool(settings.assistant_id),
        settings.run_poll_interval_seconds,
        settings.run_timeout_seconds,
    )
    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
