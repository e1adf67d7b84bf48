"""FastAPI dependency providers.

Collaborators are built once in the application lifespan and stored on
`app.state`; routes receive them through `Depends` so tests can override
each one independently.
"""

from __future__ import annotations

from fastapi import Header, HTTPException, Request

from reelforge.config import Settings, get_settings
from reelforge.services.credit_ledger import CreditLedger
from reelforge.services.job_store import JobStore
from reelforge.services.orchestrator import Orchestrator
from reelforge.services.reconciler import StatusReconciler
from reelforge.services.storage import ArtifactStorage


async def get_current_user_id(x_user_id: str | None = Header(None)) -> str:
    """Requester identity, set by the authenticating gateway in front of the API."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id


def get_orchestrator(request: Request) -> Orchestrator:
    return request.app.state.orchestrator


def get_reconciler(request: Request) -> StatusReconciler:
    return request.app.state.reconciler


def get_job_store(request: Request) -> JobStore:
    return request.app.state.job_store


def get_ledger(request: Request) -> CreditLedger:
    return request.app.state.ledger


def get_storage(request: Request) -> ArtifactStorage:
    return request.app.state.storage


def get_app_settings() -> Settings:
    return get_settings()
