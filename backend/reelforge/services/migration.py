"""Migration trigger — copies a completed job's provider-hosted video into durable storage.

Provider URLs are time-limited. The first refresh that observes a completed
job with a provider URL claims the job, ingests the file through the storage
collaborator, and records the returned key. The claim is a compare-and-set
in the job store, so concurrent refreshes migrate a job at most once.
"""

from __future__ import annotations

import logging

from reelforge.errors import MigrationFailed
from reelforge.models.job import Job
from reelforge.services.job_store import JobStore
from reelforge.services.storage import ArtifactStorage, DurableRef

logger = logging.getLogger(__name__)


class MigrationTrigger:
    def __init__(self, store: JobStore, storage: ArtifactStorage) -> None:
        self.store = store
        self.storage = storage

    async def migrate(self, job: Job) -> DurableRef | None:
        """Migrate `job` once.

        Returns the new DurableRef, or None when there is nothing to do or
        another refresh holds the claim. Raises MigrationFailed if storage
        rejects the ingest; the job keeps its provider_url as a fallback.
        """
        if not job.needs_migration:
            return None

        if not await self.store.claim_migration(job.id):
            logger.info("Migration for job %s already claimed, skipping", job.id)
            return None

        try:
            ref = await self.storage.ingest_from_url(job.provider_url, job.user_id, job.id)
        except Exception as e:
            logger.warning("Migration failed for job %s: %s", job.id, e)
            await self.store.release_migration(job.id)
            raise MigrationFailed(job.id, str(e)) from e

        if not await self.store.set_durable_ref(job.id, ref.key, ref.url):
            # Lost to a claim that expired and was retaken; the other copy wins
            logger.warning("Durable ref already set for job %s, discarding %s", job.id, ref.key)
            return None

        job.durable_ref = ref.key
        job.durable_url = ref.url
        logger.info("Job %s migrated to %s", job.id, ref.key)
        return ref
