"""ORM model package — registers all models with Base.metadata."""

from reelforge.models.job import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    Job,
    JobGroup,
    JobState,
    can_transition,
)
from reelforge.models.user import User

__all__ = [
    "Job",
    "JobGroup",
    "JobState",
    "TERMINAL_STATES",
    "VALID_TRANSITIONS",
    "can_transition",
    "User",
]
