"""Realtime fan-out to stream subscribers.

The relay never talks to viewers directly; it hands events to a hosted
pub/sub broker. Publishing is best effort: a broker outage is logged and
never fails the request that produced the event.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Protocol

import pusher

logger = logging.getLogger(__name__)


class Publisher(Protocol):
    async def publish(self, channel: str, event: str, payload: dict[str, Any]) -> bool: ...

    async def close(self) -> None: ...


class LogPublisher:
    """Publisher that only logs events (local development, tests)."""

    async def publish(self, channel: str, event: str, payload: dict[str, Any]) -> bool:
        logger.debug(f"[publish] {channel} {event} {payload}")
        return True

    async def close(self) -> None:
        return None


class PusherPublisher:
    """Publishes events through Pusher Channels with the official client.

    The client is synchronous, so each trigger runs in a worker thread.
    """

    def __init__(
        self,
        app_id: str,
        key: str,
        secret: str,
        cluster: str = "mt1",
        *,
        timeout: int = 5,
    ):
        if not app_id or not key or not secret:
            raise ValueError("Pusher app_id, key and secret are required")

        self._client = pusher.Pusher(
            app_id=app_id, key=key, secret=secret, cluster=cluster, ssl=True, timeout=timeout
        )

    async def close(self) -> None:
        return None

    async def publish(self, channel: str, event: str, payload: dict[str, Any]) -> bool:
        data = json.dumps(payload, default=str)
        try:
            await asyncio.to_thread(self._client.trigger, channel, event, data)
            return True
        except Exception as e:
            logger.warning(f"Failed to publish {event} on {channel}: {type(e).__name__}: {e}")
            return False


async def publish_safely(
    publisher: Publisher, channel: str, event: str, payload: dict[str, Any]
) -> bool:
    """Publish and swallow broker errors; the caller's operation already succeeded."""
    try:
        return await publisher.publish(channel, event, payload)
    except Exception as e:
        logger.error(f"Failed to broadcast {event} on {channel}: {type(e).__name__}: {e}")
        return False
