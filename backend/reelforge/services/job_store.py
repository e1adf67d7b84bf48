"""Job persistence — atomic group creation and guarded per-job updates.

Every operation opens its own short-lived session so that concurrent
per-job reconciliation never shares an AsyncSession. State changes are
conditional UPDATEs: the WHERE clause restricts the current status to the
legal predecessors of the target state, which keeps the lifecycle monotonic
even when two refreshes race on the same job. The migration claim is a
compare-and-set on `durable_ref IS NULL`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reelforge.models.job import Job, JobGroup, JobState, predecessors_of

logger = logging.getLogger(__name__)

GROUP_SIZE = 3


@dataclass(frozen=True)
class NewJob:
    """A successfully submitted variation, ready to be recorded."""

    variation_index: int
    provider: str
    provider_task_id: str
    prompt: str
    cost_units: int
    provider_meta: dict[str, Any] | None = None


def _utcnow() -> datetime:
    # Columns are naive DateTime, stored as UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)


class JobStore:
    """SQLAlchemy-backed persistence collaborator for jobs and job groups."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        claim_ttl_seconds: int = 900,
    ) -> None:
        self._session_factory = session_factory
        self.claim_ttl = timedelta(seconds=claim_ttl_seconds)

    async def create_job_group(
        self,
        user_id: str,
        prompt: str,
        jobs: list[NewJob],
    ) -> JobGroup:
        """Create one group and its three jobs in a single transaction (all or none)."""
        indices = sorted(j.variation_index for j in jobs)
        if indices != list(range(GROUP_SIZE)):
            raise ValueError(
                f"A job group needs exactly variations {list(range(GROUP_SIZE))}, got {indices}"
            )

        group = JobGroup(
            user_id=user_id,
            prompt=prompt,
            total_cost=sum(j.cost_units for j in jobs),
            jobs=[
                Job(
                    user_id=user_id,
                    variation_index=spec.variation_index,
                    provider=spec.provider,
                    provider_task_id=spec.provider_task_id,
                    prompt=spec.prompt,
                    status=JobState.PENDING.value,
                    progress=0,
                    cost_units=spec.cost_units,
                    provider_meta=spec.provider_meta,
                )
                for spec in sorted(jobs, key=lambda j: j.variation_index)
            ],
        )

        async with self._session_factory() as session:
            async with session.begin():
                session.add(group)

        logger.info(
            "Job group %s created for user %s: %s",
            group.id, user_id, ", ".join(f"{j.provider}:{j.id}" for j in group.jobs),
        )
        return group

    async def get_job_group(self, parent_or_job_id: str, user_id: str | None = None) -> list[Job]:
        """Jobs of a group when given a group id; the single job when given a job id."""
        stmt = select(Job).where(
            or_(Job.parent_id == parent_or_job_id, Job.id == parent_or_job_id)
        )
        if user_id is not None:
            stmt = stmt.where(Job.user_id == user_id)

        async with self._session_factory() as session:
            result = await session.execute(stmt.order_by(Job.variation_index))
            return list(result.scalars().all())

    async def get_job(self, job_id: str, user_id: str | None = None) -> Job | None:
        stmt = select(Job).where(Job.id == job_id)
        if user_id is not None:
            stmt = stmt.where(Job.user_id == user_id)

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def update_job_state(
        self,
        job_id: str,
        state: JobState,
        *,
        progress: int,
        provider_url: str | None = None,
        thumbnail_url: str | None = None,
        failure_reason: str | None = None,
        provider_meta: dict[str, Any] | None = None,
    ) -> bool:
        """Move a job forward to `state`. Returns False if the job already moved past it."""
        allowed_from = [s.value for s in predecessors_of(state)]
        if not allowed_from:
            raise ValueError(f"{state.value} cannot be entered from any state")

        values: dict[str, Any] = {"status": state.value, "progress": progress}
        if provider_url is not None:
            values["provider_url"] = provider_url
        if thumbnail_url is not None:
            values["thumbnail_url"] = thumbnail_url
        if failure_reason is not None:
            values["failure_reason"] = failure_reason
        if provider_meta is not None:
            values["provider_meta"] = provider_meta

        stmt = (
            update(Job)
            .where(Job.id == job_id, Job.status.in_(allowed_from))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return await self._execute_update(stmt)

    async def update_progress(self, job_id: str, state: JobState, progress: int) -> bool:
        """Record a progress change without changing state."""
        stmt = (
            update(Job)
            .where(Job.id == job_id, Job.status == state.value, Job.progress != progress)
            .values(progress=progress)
            .execution_options(synchronize_session=False)
        )
        return await self._execute_update(stmt)

    async def claim_migration(self, job_id: str) -> bool:
        """Atomically claim the right to migrate a job's artifact.

        Succeeds only for a completed job with no durable_ref and no live
        claim. Claims older than the TTL are treated as abandoned.
        """
        now = _utcnow()
        stmt = (
            update(Job)
            .where(
                Job.id == job_id,
                Job.status == JobState.COMPLETED.value,
                Job.durable_ref.is_(None),
                or_(
                    Job.migration_claimed_at.is_(None),
                    Job.migration_claimed_at < now - self.claim_ttl,
                ),
            )
            .values(migration_claimed_at=now)
            .execution_options(synchronize_session=False)
        )
        return await self._execute_update(stmt)

    async def set_durable_ref(self, job_id: str, durable_ref: str, durable_url: str | None) -> bool:
        """Record the durable copy. Never overwrites an existing reference."""
        stmt = (
            update(Job)
            .where(
                Job.id == job_id,
                Job.status == JobState.COMPLETED.value,
                Job.durable_ref.is_(None),
            )
            .values(durable_ref=durable_ref, durable_url=durable_url)
            .execution_options(synchronize_session=False)
        )
        return await self._execute_update(stmt)

    async def release_migration(self, job_id: str) -> None:
        """Drop a claim after a failed migration so a later poll can retry."""
        stmt = (
            update(Job)
            .where(Job.id == job_id, Job.durable_ref.is_(None))
            .values(migration_claimed_at=None)
            .execution_options(synchronize_session=False)
        )
        await self._execute_update(stmt)

    async def _execute_update(self, stmt) -> bool:
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(stmt)
        return result.rowcount == 1
