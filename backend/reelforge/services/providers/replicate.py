"""Replicate Stable Video Diffusion provider.

Image-to-video only: SVD animates a seed image and has no text conditioning,
so requests without an image are rejected before any network call.
"""

from __future__ import annotations

import logging
from typing import Any

from reelforge.errors import UnsupportedRequest
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

SVD_MODEL = "stable-video-diffusion"

# Generation defaults
MOTION_BUCKET_ID = 127  # 1-255, higher = more motion
FPS = 6
COND_AUG = 0.02
DECODING_T = 7
VIDEO_LENGTH = "14_frames_with_svd"

_STATE_MAP: dict[str, JobState] = {
    "starting": JobState.PENDING,
    "processing": JobState.PROCESSING,
    "succeeded": JobState.COMPLETED,
    "failed": JobState.FAILED,
    "canceled": JobState.FAILED,
}


class ReplicateAdapter(ProviderAdapter):
    """Image-to-video fallback provider."""

    name = "replicate"

    def __init__(self, *, model_version: str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.model_version = model_version

    async def submit(self, request: GenerationRequest) -> JobHandle:
        if not request.image_url:
            raise UnsupportedRequest(
                self.name,
                "Stable Video Diffusion requires an input image; "
                "use luma or runway for text-to-video",
            )

        body = {
            "version": self.model_version,
            "input": {
                "image": request.image_url,
                "motion_bucket_id": MOTION_BUCKET_ID,
                "fps": FPS,
                "cond_aug": COND_AUG,
                "decoding_t": DECODING_T,
                "video_length": VIDEO_LENGTH,
            },
        }

        data = await self._request("POST", "/predictions", json=body)
        task_id = self._require_task_id(data, "id")
        logger.info("Replicate prediction created: %s", task_id)

        return JobHandle(provider=self.name, task_id=task_id, model=SVD_MODEL)

    async def query_status(self, provider_task_id: str) -> CanonicalStatus:
        data = await self._request("GET", f"/predictions/{provider_task_id}")

        raw_state = data.get("status") or ""

        return CanonicalStatus(
            state=map_state(raw_state, _STATE_MAP),
            raw_state=raw_state,
            progress=normalize_progress(data.get("progress")),
            video_url=_output_url(data.get("output")),
            failure_reason=data.get("error"),
            metadata={
                key: data.get(key) for key in ("status", "logs", "metrics") if key in data
            },
        )


def _output_url(output: Any) -> str | None:
    # SVD returns a single URL; some model versions return a list of frames/videos
    if isinstance(output, list):
        return output[-1] if output else None
    return output or None
