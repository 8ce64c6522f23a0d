#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
WikiAttach FastAPI application
==============================
Entry point.  Start with:
    uvicorn wikiattach.main:app --reload
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from wikiattach.core.config import get_settings
from wikiattach.core.database import dispose_engines, init_db
from wikiattach.routes import attachments, auth, pages


logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    if settings.debug:
        await init_db()
    logger.info("Storing attachments under %s", settings.storage_root.resolve())
    logger.debug("Spooling uploads in %s", settings.spool_dir)
    yield
    await dispose_engines()


# -----------------------------------------------------------------------------

def create_app() -> FastAPI:
    settings = get_settings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Attachment ingestion and rendering for a collaborative wiki",
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )

    # ── CORS ──────────────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Routers ───────────────────────────────────────────────────────────
    API = "/api/v1"
    app.include_router(auth.router,        prefix=API)
    app.include_router(pages.router,       prefix=API)
    app.include_router(attachments.router, prefix=API)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


# -----------------------------------------------------------------------------

app = create_app()


# -----------------------------------------------------------------------------
