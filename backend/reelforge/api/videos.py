"""Video generation API endpoints.

POST /generate  debit credits, dispatch three variations
GET  /status/{id}  refresh a group (or a single job) from its providers
GET  /download/{job_id}  signed durable URL, or the provider URL as fallback
"""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException

from reelforge.api.deps import (
    get_app_settings,
    get_current_user_id,
    get_job_store,
    get_ledger,
    get_orchestrator,
    get_reconciler,
    get_storage,
)
from reelforge.config import Settings
from reelforge.errors import (
    ArtifactNotReady,
    DispatchFailed,
    GenerationError,
    InsufficientFunds,
    ProviderError,
    UnknownProvider,
    UnsupportedRequest,
)
from reelforge.models.job import Job
from reelforge.schemas.generation import (
    DispatchedJob,
    DownloadResponse,
    GenerateRequest,
    GenerateResponse,
    JobRead,
    StatusResponse,
)
from reelforge.services.credit_ledger import CreditLedger
from reelforge.services.downloads import resolve_download
from reelforge.services.job_store import JobStore
from reelforge.services.orchestrator import DispatchParams, Orchestrator
from reelforge.services.reconciler import StatusReconciler
from reelforge.services.storage import ArtifactStorage

router = APIRouter()
logger = logging.getLogger(__name__)


def _dispatch_http_error(exc: GenerationError) -> HTTPException:
    """Map a dispatch exception to the HTTP status the client sees."""
    cause = exc.cause if isinstance(exc, DispatchFailed) else exc
    if isinstance(cause, UnsupportedRequest):
        return HTTPException(status_code=400, detail=str(cause))
    if isinstance(cause, UnknownProvider):
        return HTTPException(status_code=500, detail=str(cause))
    if isinstance(cause, ProviderError):
        return HTTPException(status_code=502, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


def _job_view(job: Job, error: Exception | None = None, migration_error: Exception | None = None) -> JobRead:
    view = JobRead.model_validate(job)
    return view.model_copy(update={
        "migrated": bool(job.durable_ref),
        "error": str(error) if error else None,
        "migration_error": str(migration_error) if migration_error else None,
    })


@router.post("/generate", response_model=GenerateResponse)
async def generate_videos(
    data: GenerateRequest,
    user_id: str = Depends(get_current_user_id),
    orchestrator: Orchestrator = Depends(get_orchestrator),
    ledger: CreditLedger = Depends(get_ledger),
):
    """Dispatch one prompt as three provider variations.

    Credits for the whole group are debited up front and returned if the
    group is not recorded.
    """
    cost = orchestrator.group_cost
    try:
        await ledger.check_and_debit(user_id, cost)
    except InsufficientFunds as e:
        raise HTTPException(
            status_code=403,
            detail={"error": "Insufficient credits", "required": e.required, "available": e.available},
        )

    params = DispatchParams(
        image_url=data.image_url,
        style=data.style,
        duration=data.duration,
        aspect_ratio=data.aspect_ratio,
    )
    try:
        group = await orchestrator.dispatch(data.prompt, params, user_id)
    except BaseException as e:
        # Includes cancellation: an abandoned request records no jobs, so it keeps no charge
        try:
            await asyncio.shield(ledger.refund(user_id, cost))
        except Exception:
            logger.error("Refund of %d credits to user %s failed", cost, user_id, exc_info=True)
        if isinstance(e, GenerationError):
            raise _dispatch_http_error(e) from e
        raise

    return GenerateResponse(
        message="Generation started",
        parent_id=group.id,
        total_cost=group.total_cost,
        jobs=[
            DispatchedJob(
                job_id=job.id,
                variation=job.variation_index,
                provider=job.provider,
                task_id=job.provider_task_id,
                state=job.status,
            )
            for job in group.jobs
        ],
    )


@router.get("/status/{parent_or_job_id}", response_model=StatusResponse)
async def get_status(
    parent_or_job_id: str,
    user_id: str = Depends(get_current_user_id),
    store: JobStore = Depends(get_job_store),
    reconciler: StatusReconciler = Depends(get_reconciler),
):
    """Refresh every job of a group from its provider and return the result.

    A provider outage on one job is reported in that job's `error` field.
    """
    jobs = await store.get_job_group(parent_or_job_id, user_id=user_id)
    if not jobs:
        raise HTTPException(status_code=404, detail="Job not found")

    outcomes = await reconciler.refresh(jobs)
    views = [_job_view(o.job, o.error, o.migration_error) for o in outcomes]
    return StatusResponse(
        parent_id=jobs[0].parent_id,
        jobs=views,
        all_terminal=all(o.job.is_terminal for o in outcomes),
    )


@router.get("/download/{job_id}", response_model=DownloadResponse)
async def get_download(
    job_id: str,
    user_id: str = Depends(get_current_user_id),
    store: JobStore = Depends(get_job_store),
    storage: ArtifactStorage = Depends(get_storage),
    settings: Settings = Depends(get_app_settings),
):
    """Return a time-limited download URL for one job's video."""
    job = await store.get_job(job_id, user_id=user_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")

    try:
        link = await resolve_download(job, storage, settings.DOWNLOAD_URL_TTL)
    except ArtifactNotReady:
        raise HTTPException(status_code=400, detail="Video not ready")

    return DownloadResponse(download_url=link.url, expires_in=link.expires_in, source=link.source)
