"""Download link resolution for a single job."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from reelforge.errors import ArtifactNotReady
from reelforge.models.job import Job
from reelforge.services.storage import ArtifactStorage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DownloadLink:
    url: str
    expires_in: int | None
    source: str  # "durable" or "provider"


async def resolve_download(job: Job, storage: ArtifactStorage, ttl_seconds: int) -> DownloadLink:
    """Prefer a signed URL for the durable copy, fall back to the provider URL.

    Raises ArtifactNotReady when neither exists.
    """
    if job.durable_ref:
        try:
            url = await storage.sign_download_url(job.durable_ref, ttl_seconds)
            return DownloadLink(url=url, expires_in=ttl_seconds, source="durable")
        except Exception as e:
            if not (job.durable_url or job.provider_url):
                raise
            logger.warning("Signing %s failed for job %s: %s", job.durable_ref, job.id, e)

        if job.durable_url:
            return DownloadLink(url=job.durable_url, expires_in=None, source="durable")

    if job.provider_url:
        return DownloadLink(url=job.provider_url, expires_in=None, source="provider")

    raise ArtifactNotReady(f"Job {job.id} has no video yet (status: {job.status})")
