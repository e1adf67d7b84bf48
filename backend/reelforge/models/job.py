"""Job ORM models — variation groups and their per-provider generation jobs."""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from reelforge.database import Base


class JobState(str, enum.Enum):
    """Canonical job lifecycle, independent of any provider vocabulary.

    UNKNOWN is never persisted: adapters return it for provider states they
    cannot map, and the reconciler treats it as a no-op.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    UNKNOWN = "unknown"


TERMINAL_STATES: frozenset[JobState] = frozenset({JobState.COMPLETED, JobState.FAILED})

# Forward-only transitions: status -> set of reachable statuses
VALID_TRANSITIONS: dict[JobState, set[JobState]] = {
    JobState.PENDING: {JobState.PROCESSING, JobState.COMPLETED, JobState.FAILED},
    JobState.PROCESSING: {JobState.COMPLETED, JobState.FAILED},
    JobState.COMPLETED: set(),  # terminal state
    JobState.FAILED: set(),  # terminal state
}


def can_transition(current: JobState, target: JobState) -> bool:
    return target in VALID_TRANSITIONS.get(current, set())


def predecessors_of(target: JobState) -> set[JobState]:
    """States from which `target` may be entered."""
    return {state for state, reachable in VALID_TRANSITIONS.items() if target in reachable}


def _new_id() -> str:
    return str(uuid.uuid4())


class JobGroup(Base):
    """One dispatch: a prompt fanned out into exactly three variation jobs."""

    __tablename__ = "job_groups"
    __table_args__ = {
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    prompt: Mapped[str] = mapped_column(Text, nullable=False)
    total_cost: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    jobs = relationship(
        "Job",
        back_populates="group",
        cascade="all, delete-orphan",
        order_by="Job.variation_index",
        lazy="selectin",
    )


class Job(Base):
    """A single provider-side generation attempt."""

    __tablename__ = "jobs"
    __table_args__ = (
        UniqueConstraint("parent_id", "variation_index", name="uq_jobs_parent_variation"),
        {
            "mysql_charset": "utf8mb4",
            "mysql_collate": "utf8mb4_unicode_ci",
        },
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    parent_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("job_groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    variation_index: Mapped[int] = mapped_column(Integer, nullable=False)

    # Provider identity (immutable after submission)
    provider: Mapped[str] = mapped_column(String(50), nullable=False)
    provider_task_id: Mapped[str] = mapped_column(String(255), nullable=False)
    prompt: Mapped[str] = mapped_column(Text, nullable=False)

    # Lifecycle (mutated only by the status reconciler)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=JobState.PENDING.value
    )
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    provider_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    thumbnail_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    failure_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Durable copy (set once, never cleared)
    durable_ref: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    durable_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    migration_claimed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    cost_units: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    provider_meta: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )

    group = relationship("JobGroup", back_populates="jobs")

    @property
    def state(self) -> JobState:
        return JobState(self.status)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def needs_migration(self) -> bool:
        """Completed with a provider-hosted artifact that has not been copied yet."""
        return (
            self.state is JobState.COMPLETED
            and bool(self.provider_url)
            and not self.durable_ref
        )
