"""WebSocket endpoint for live job updates.

Relays the Redis Pub/Sub channel of a job group to connected clients, so a
browser can follow progress while another client drives status polls.
"""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from reelforge.services.pubsub import listen_pubsub, subscribe_group

router = APIRouter()
logger = logging.getLogger(__name__)


@router.websocket("/ws/videos/{parent_id}")
async def ws_job_group(ws: WebSocket, parent_id: str):
    """Stream job_update messages for one group; answers "ping" with a pong."""
    await ws.accept()
    logger.info("WS connected: group=%s", parent_id)

    pubsub = None
    listener_task = None
    try:
        _, pubsub = await subscribe_group(parent_id)
        listener_task = asyncio.create_task(_relay_pubsub_to_ws(pubsub, ws, parent_id))

        while True:
            data = await ws.receive_text()
            if data == "ping":
                await ws.send_json({"type": "pong"})
    except WebSocketDisconnect:
        logger.info("WS disconnected: group=%s", parent_id)
    except Exception as exc:
        logger.warning("WS error for group=%s: %s", parent_id, exc)
    finally:
        if listener_task:
            listener_task.cancel()
        if pubsub:
            await pubsub.unsubscribe()
            await pubsub.aclose()
        # The redis client is a shared singleton owned by services.pubsub


async def _relay_pubsub_to_ws(pubsub, ws: WebSocket, parent_id: str):
    try:
        async for message in listen_pubsub(pubsub):
            try:
                await ws.send_json(message)
            except Exception:
                break  # WebSocket closed
    except asyncio.CancelledError:
        pass
    except Exception as exc:
        logger.warning("Pub/Sub relay error for group=%s: %s", parent_id, exc)
