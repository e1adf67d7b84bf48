"""Status reconciler — refreshes jobs from their providers on client poll.

For each non-terminal job:
1. Query the job's adapter with its provider task id
2. Apply the canonical state machine (forward-only; unknown is a no-op)
3. On completion, fire the migration trigger once

Jobs are refreshed concurrently and independently: a provider outage on one
job is recorded on that job's outcome and never blocks its siblings.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass

from reelforge.errors import MigrationFailed, ProviderError
from reelforge.models.job import Job, JobState, can_transition
from reelforge.services.job_store import JobStore
from reelforge.services.migration import MigrationTrigger
from reelforge.services.provider_registry import ProviderRegistry
from reelforge.services.providers import CanonicalStatus

logger = logging.getLogger(__name__)

JobChangeHook = Callable[[Job], Awaitable[None]]


@dataclass
class RefreshOutcome:
    """Per-job result of one refresh round."""

    job: Job
    changed: bool = False
    migrated: bool = False
    error: Exception | None = None
    migration_error: MigrationFailed | None = None


class StatusReconciler:
    def __init__(
        self,
        registry: ProviderRegistry,
        store: JobStore,
        migration: MigrationTrigger,
        *,
        provider_timeout: float = 30.0,
        retry_migration: bool = True,
        on_change: JobChangeHook | None = None,
    ) -> None:
        self.registry = registry
        self.store = store
        self.migration = migration
        self.provider_timeout = provider_timeout
        self.retry_migration = retry_migration
        self.on_change = on_change

    async def refresh(self, jobs: Iterable[Job]) -> list[RefreshOutcome]:
        """Refresh every job concurrently; outcomes keep the input order."""
        return list(await asyncio.gather(*(self._refresh_isolated(job) for job in jobs)))

    async def watch(
        self,
        jobs: list[Job],
        *,
        interval: float = 10.0,
        timeout: float = 600.0,
    ) -> list[RefreshOutcome]:
        """Refresh until every job is terminal or `timeout` elapses.

        Meant to run as an asyncio.Task so the caller can cancel it at any
        time; nothing is held between rounds.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        outcomes = await self.refresh(jobs)

        while not all(o.job.is_terminal for o in outcomes):
            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.info("watch: %d job(s) still running after %.0fs", len(jobs), timeout)
                break
            await asyncio.sleep(min(interval, remaining))
            outcomes = await self.refresh([o.job for o in outcomes])

        return outcomes

    async def _refresh_isolated(self, job: Job) -> RefreshOutcome:
        outcome = RefreshOutcome(job=job)
        try:
            await self._refresh_one(outcome)
        except ProviderError as e:
            logger.warning("Status check failed for job %s (%s): %s", job.id, job.provider, e)
            outcome.error = e
        except Exception as e:
            logger.error("Refresh failed for job %s: %s", job.id, e, exc_info=True)
            outcome.error = e
        return outcome

    async def _refresh_one(self, outcome: RefreshOutcome) -> None:
        job = outcome.job

        if not job.is_terminal:
            status = await self._query(job)
            outcome.changed = await self._apply(job, status)
            if outcome.changed and self.on_change is not None:
                await self._notify(job)
            if not job.needs_migration:
                return
        elif not (self.retry_migration and job.needs_migration):
            return

        try:
            outcome.migrated = await self.migration.migrate(job) is not None
        except MigrationFailed as e:
            outcome.migration_error = e
            return
        if outcome.migrated and self.on_change is not None:
            await self._notify(job)

    async def _query(self, job: Job) -> CanonicalStatus:
        adapter = self.registry.resolve(job.provider)
        try:
            return await asyncio.wait_for(
                adapter.query_status(job.provider_task_id),
                timeout=self.provider_timeout,
            )
        except asyncio.TimeoutError:
            raise ProviderError(
                job.provider, f"status query timed out after {self.provider_timeout}s"
            ) from None

    async def _apply(self, job: Job, status: CanonicalStatus) -> bool:
        """Persist the provider status if it moves the job forward. Returns True on change."""
        current = job.state

        if status.state is JobState.UNKNOWN:
            logger.warning(
                "Job %s: unmapped %s state %r, leaving %s",
                job.id, job.provider, status.raw_state, current.value,
            )
            return False

        if status.state is current:
            if status.progress != job.progress and await self.store.update_progress(
                job.id, current, status.progress
            ):
                job.progress = status.progress
                return True
            return False

        if not can_transition(current, status.state):
            logger.debug(
                "Job %s: ignoring %s → %s reported by %s",
                job.id, current.value, status.state.value, job.provider,
            )
            return False

        progress = 100 if status.state is JobState.COMPLETED else status.progress
        applied = await self.store.update_job_state(
            job.id,
            status.state,
            progress=progress,
            provider_url=status.video_url,
            thumbnail_url=status.thumbnail_url,
            failure_reason=status.failure_reason,
        )
        if not applied:
            # A concurrent refresh got there first; our snapshot is stale
            logger.info("Job %s: concurrent update won, skipping %s", job.id, status.state.value)
            return False

        job.status = status.state.value
        job.progress = progress
        if status.video_url:
            job.provider_url = status.video_url
        if status.thumbnail_url:
            job.thumbnail_url = status.thumbnail_url
        if status.failure_reason:
            job.failure_reason = status.failure_reason

        logger.info("Job %s: %s → %s (%d%%)", job.id, current.value, status.state.value, progress)
        return True

    async def _notify(self, job: Job) -> None:
        try:
            await self.on_change(job)
        except Exception:
            # Best-effort: a notification failure never fails the refresh
            logger.warning("on_change hook failed for job %s", job.id, exc_info=True)
