"""ReelForge — FastAPI application entry point.

Builds the provider registry, job store, ledger, storage and the two
coordinators once at startup, mounts the API routes and configures CORS.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from reelforge.api.router import api_router
from reelforge.api.ws import router as ws_router
from reelforge.config import get_settings
from reelforge.database import async_session_factory, close_db
from reelforge.services.credit_ledger import CreditLedger
from reelforge.services.job_store import JobStore
from reelforge.services.migration import MigrationTrigger
from reelforge.services.orchestrator import Orchestrator
from reelforge.services.provider_registry import build_provider_registry
from reelforge.services.pubsub import close_pubsub, publish_job_update
from reelforge.services.reconciler import StatusReconciler
from reelforge.services.storage import S3Storage

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Wire collaborators on startup, release connections on shutdown."""
    logger.info("ReelForge starting up...")
    logger.info("Database: %s@%s/%s", settings.DB_USER, settings.DB_HOST, settings.DB_NAME)

    http_client = httpx.AsyncClient(timeout=settings.PROVIDER_TIMEOUT)
    registry = build_provider_registry(settings, http_client)
    store = JobStore(async_session_factory, claim_ttl_seconds=settings.MIGRATION_CLAIM_TTL)
    storage = S3Storage.from_settings(settings)

    app.state.job_store = store
    app.state.ledger = CreditLedger(async_session_factory)
    app.state.storage = storage
    app.state.orchestrator = Orchestrator(
        registry,
        store,
        cost_per_scene=settings.CREDITS_PER_SCENE,
        provider_timeout=settings.PROVIDER_TIMEOUT,
    )
    app.state.reconciler = StatusReconciler(
        registry,
        store,
        MigrationTrigger(store, storage),
        provider_timeout=settings.PROVIDER_TIMEOUT,
        retry_migration=settings.MIGRATION_RETRY_ON_POLL,
        on_change=publish_job_update,
    )

    yield

    await http_client.aclose()
    await close_pubsub()
    await close_db()
    logger.info("ReelForge shut down")


app = FastAPI(
    title="ReelForge API",
    description="Multi-provider AI video generation: one prompt, three variations",
    version="0.1.0",
    lifespan=lifespan,
    redirect_slashes=False,
)

# CORS: allow frontend dev server (configurable via CORS_ORIGINS env)
_cors_origins = os.environ.get(
    "CORS_ORIGINS",
    "http://localhost:3000,http://127.0.0.1:3000",
).split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)
app.include_router(ws_router)


@app.get("/")
async def root():
    return {"service": "ReelForge", "status": "running"}


@app.get("/health")
async def health():
    """Liveness check; does not touch the database or providers."""
    return {"status": "ok", "providers": ["luma", "runway", "replicate"]}
