"""FastAPI application factory."""

import asyncio
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from server.dependencies import get_runtime
from server.middleware import RequestIDMiddleware
from server.routes import health, messages, search
from utils.logger import get_logger

logger = get_logger(__name__)


def _resolve_runtime(app: FastAPI):
    factory = app.dependency_overrides.get(get_runtime, get_runtime)
    return factory()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the dispatcher and restore stored annotations in the background."""
    logger.info("FastAPI server starting up")

    missing = [k for k in ["API_KEYS"] if not os.getenv(k)]
    if missing:
        logger.warning(f"Missing environment variables: {missing}")

    runtime = _resolve_runtime(app)
    runtime.dispatcher.start()
    restore_task = asyncio.create_task(runtime.restorer().restore())

    yield

    logger.info("FastAPI server shutting down")
    restore_task.cancel()
    runtime.approvals.cancel_all()
    await runtime.dispatcher.stop()


def create_app() -> FastAPI:
    """Factory function to create FastAPI application."""
    app = FastAPI(
        title="Auto Illustration API",
        description="Attach relevant images to chat transcript messages",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(RequestIDMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(messages.router)
    app.include_router(search.router)

    return app
