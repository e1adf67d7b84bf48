"""Video provider adapters.

Each adapter implements the async task pattern behind one contract:
  submit(request) → provider task handle
  query_status(task_id) → canonical status
"""

from reelforge.services.providers.base import (
    CanonicalStatus,
    GenerationRequest,
    JobHandle,
    ProviderAdapter,
)
from reelforge.services.providers.luma import LumaAdapter
from reelforge.services.providers.replicate import ReplicateAdapter
from reelforge.services.providers.runway import RunwayAdapter

__all__ = [
    "CanonicalStatus",
    "GenerationRequest",
    "JobHandle",
    "ProviderAdapter",
    "LumaAdapter",
    "ReplicateAdapter",
    "RunwayAdapter",
]
