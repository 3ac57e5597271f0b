from __future__ import annotations

import logging

from fastapi import FastAPI

from app.core import config
from app.core.pipeline import ChatPipeline, build_default_pipeline
from app.dependencies import register_exception_handlers
from app.internal import admin
from app.routers import chat, intent, models, tools


def configure_logging() -> None:
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(pipeline: ChatPipeline | None = None) -> FastAPI:
    configure_logging()

    app = FastAPI(
        title="fallback-chat-gateway",
        version="0.1.0",
        docs_url="/docs",
        redoc_url=None,
    )

    # built once; holds the on-device pipeline cache shared by every request
    app.state.pipeline = pipeline or build_default_pipeline()

    register_exception_handlers(app)

    app.include_router(models.router)
    app.include_router(chat.router)
    app.include_router(intent.router)
    app.include_router(tools.router)
    app.include_router(admin.router)

    return app


app = create_app()
