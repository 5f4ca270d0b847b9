"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from replybot.api.routes.drafts import router as drafts_router
from replybot.api.routes.health import router as health_router
from replybot.api.routes.jobs import router as jobs_router
from replybot.api.routes.transcripts import router as transcripts_router
from replybot.config.settings import Settings, get_settings
from replybot.service import ReplyBotService, build_service

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    service: Optional[ReplyBotService] = None,
    autostart: Optional[bool] = None,
) -> FastAPI:
    """
    Build and return a fully wired FastAPI application.

    Without an explicit *service* the production service is built and its
    worker and scheduler run for the lifetime of the app. An injected
    service is only started when *autostart* is true.
    """
    settings = settings or get_settings()
    if autostart is None:
        autostart = service is None
    service = service or build_service(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if autostart:
            service.start()
        try:
            yield
        finally:
            if autostart:
                service.stop()

    app = FastAPI(
        title="ReplyBot API",
        version="0.1.0",
        description="Transcript indexing and RAG reply drafting for YouTube comments",
        lifespan=lifespan,
    )

    # Shared state, accessible via request.app.state in routes
    app.state.settings = settings
    app.state.service = service

    app.include_router(health_router)
    app.include_router(transcripts_router)
    app.include_router(drafts_router)
    app.include_router(jobs_router)

    return app
