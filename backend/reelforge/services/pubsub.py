"""Redis Pub/Sub notifications for job status changes.

The status reconciler publishes every persisted change to a per-group
channel; any number of listeners (dashboards, WebSocket relays) can
subscribe without polling the API.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import redis.asyncio as aioredis

from reelforge.config import get_settings
from reelforge.models.job import Job

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "reelforge:jobs:"

_async_client: aioredis.Redis | None = None


def _get_async_client() -> aioredis.Redis:
    """Lazy-init a module-level async Redis client (singleton)."""
    global _async_client
    if _async_client is None:
        settings = get_settings()
        _async_client = aioredis.from_url(settings.REDIS_URL)
    return _async_client


def channel_for(parent_id: str) -> str:
    return f"{CHANNEL_PREFIX}{parent_id}"


def job_update_message(job: Job) -> dict[str, Any]:
    return {
        "type": "job_update",
        "job_id": job.id,
        "variation": job.variation_index,
        "provider": job.provider,
        "state": job.status,
        "progress": job.progress,
        "migrated": bool(job.durable_ref),
    }


async def publish_job_update(job: Job, client: aioredis.Redis | None = None) -> None:
    """Publish a job change to its group channel. Never raises."""
    try:
        r = client or _get_async_client()
        await r.publish(channel_for(job.parent_id), json.dumps(job_update_message(job)))
    except Exception:
        # Best-effort: don't fail the status poll
        logger.warning("Failed to publish update for job %s", job.id, exc_info=True)


async def subscribe_group(parent_id: str) -> tuple[aioredis.Redis, aioredis.client.PubSub]:
    """Subscribe to a group's channel.

    Caller should close the pubsub when done, but NOT the client.
    """
    r = _get_async_client()
    pubsub = r.pubsub()
    await pubsub.subscribe(channel_for(parent_id))
    return r, pubsub


async def listen_pubsub(pubsub: aioredis.client.PubSub):
    """Async generator that yields parsed messages from a PubSub subscription."""
    async for raw_message in pubsub.listen():
        if raw_message["type"] == "message":
            try:
                yield json.loads(raw_message["data"])
            except (json.JSONDecodeError, TypeError):
                continue


async def close_pubsub() -> None:
    global _async_client
    if _async_client is not None:
        await _async_client.aclose()
        _async_client = None
