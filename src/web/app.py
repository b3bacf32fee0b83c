"""FastAPI application entry point."""

import os
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from intents import Steward
from observability import log_run_summary
from web.deps import load_steward
from web.routes import conversations, operations

logger = structlog.get_logger()


def create_app(steward: Optional[Steward] = None) -> FastAPI:
    """Build the API. ``steward`` is built from config on startup when not given."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.steward = steward or load_steward()
        logger.info("web.startup")
        yield
        cancelled = app.state.steward.stop()
        logger.info("web.shutdown", cancelled=cancelled)
        log_run_summary()

    app = FastAPI(title="NoteSteward", version="0.1.0", lifespan=lifespan)

    # CORS: allow the vault UI origin
    frontend_origin = os.getenv("FRONTEND_ORIGIN", "http://localhost:3000")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[frontend_origin],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(conversations.router)
    app.include_router(operations.router)

    @app.get("/api/health")
    async def health():
        return {"status": "ok"}

    return app
