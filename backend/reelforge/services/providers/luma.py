"""Luma Dream Machine video generation provider.

Supports:
- Text-to-video and image-to-video (start keyframe + optional end keyframe)
- Ray2 clips of 5-9 seconds; duration is chosen by the provider
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from reelforge.models.job import JobState
from reelforge.services.providers.base import (
    CanonicalStatus,
    GenerationRequest,
    JobHandle,
    ProviderAdapter,
    map_state,
    normalize_progress,
)

logger = logging.getLogger(__name__)

_STATE_MAP: dict[str, JobState] = {
    "queued": JobState.PENDING,
    "dreaming": JobState.PROCESSING,
    "processing": JobState.PROCESSING,
    "completed": JobState.COMPLETED,
    "failed": JobState.FAILED,
}


class LumaAdapter(ProviderAdapter):
    """Primary provider: cinematic and wide-angle variations."""

    name = "luma"

    async def submit(self, request: GenerationRequest) -> JobHandle:
        body: dict[str, Any] = {
            "prompt": request.prompt,
            "aspect_ratio": request.aspect_ratio,
            "loop": request.loop,
        }
        if request.image_url:
            body["image_url"] = request.image_url
            if request.image_end_url:
                body["image_end_url"] = request.image_end_url

        data = await self._request("POST", "/generations", json=body)
        task_id = self._require_task_id(data, "id")
        logger.info("Luma task created: %s", task_id)

        return JobHandle(
            provider=self.name,
            task_id=task_id,
            model=data.get("model"),
            created_at=_parse_timestamp(data.get("created_at")),
        )

    async def query_status(self, provider_task_id: str) -> CanonicalStatus:
        data = await self._request("GET", f"/generations/{provider_task_id}")

        raw_state = data.get("state") or ""
        assets = data.get("assets") or {}

        return CanonicalStatus(
            state=map_state(raw_state, _STATE_MAP),
            raw_state=raw_state,
            progress=normalize_progress(data.get("progress")),
            video_url=_asset_url(assets, "video"),
            thumbnail_url=_asset_url(assets, "image"),
            failure_reason=data.get("failure_reason"),
            metadata=data,
        )


def _asset_url(assets: dict[str, Any], kind: str) -> str | None:
    # Older API revisions nest {"url": ...}; current ones return the URL directly.
    value = assets.get(kind)
    if isinstance(value, dict):
        return value.get("url")
    return value or None


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            pass
    return datetime.now(timezone.utc)
