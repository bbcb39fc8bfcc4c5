"""Stream lifecycle: creation, start/stop transitions and broadcaster controls."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime

from trailcam.core.exceptions import InvalidTransition, NotBroadcaster, StreamNotFound
from trailcam.models.stream import DEFAULT_QUALITY, STATUS_LIVE, STATUS_OFFLINE, LiveStream
from trailcam.repositories import ChatRepository, StreamRepository
from trailcam.services.publisher import Publisher, publish_safely
from trailcam.services.rate_limiter import FixedWindowRateLimiter
from trailcam.storage import ChunkStore

logger = logging.getLogger(__name__)


def recommend_quality(viewer_count: int) -> str:
    """Lower the suggested rendition as the audience grows."""
    if viewer_count > 100:
        return "360p"
    if viewer_count > 50:
        return "720p"
    return "1080p"


class StreamService:
    """Owns the ``scheduled/offline -> live -> offline`` state machine."""

    def __init__(
        self,
        streams: StreamRepository,
        chats: ChatRepository,
        chunks: ChunkStore,
        publisher: Publisher,
        chat_limiter: FixedWindowRateLimiter,
    ) -> None:
        self.streams = streams
        self.chats = chats
        self.chunks = chunks
        self.publisher = publisher
        self.chat_limiter = chat_limiter

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get(self, slug: str) -> LiveStream:
        stream = await self.streams.get_by_slug(slug)
        if stream is None:
            raise StreamNotFound(slug)
        return stream

    async def list_live(self) -> list[LiveStream]:
        return await self.streams.list_live()

    async def open_for_viewer(self, slug: str) -> LiveStream:
        """Resolve a stream for its viewer page and count the visit."""
        stream = await self.get(slug)
        await self.streams.increment_views(stream.id)
        return stream

    async def create(
        self,
        owner_id: str,
        title: str,
        description: str | None = None,
        quality: str = DEFAULT_QUALITY,
    ) -> LiveStream:
        stream = await self.streams.create(
            title=title, broadcaster_id=owner_id, description=description, quality=quality
        )
        logger.info(f"Broadcaster {owner_id} created stream {stream.id} ({stream.slug})")
        return stream

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    @staticmethod
    def ensure_owner(stream: LiveStream, user_id: str) -> None:
        if not stream.is_owned_by(user_id):
            logger.warning(f"User {user_id} denied broadcaster access to stream {stream.id}")
            raise NotBroadcaster()

    async def start(
        self, stream: LiveStream, user_id: str, quality: str = DEFAULT_QUALITY
    ) -> LiveStream:
        """Open a fresh session: no chat history, no segments, zero viewers."""
        self.ensure_owner(stream, user_id)
        if stream.is_live:
            raise InvalidTransition(stream.status, STATUS_LIVE)

        cleared = await self.chats.clear(stream.id)
        purged = await asyncio.to_thread(self.chunks.sweep_all, stream.id)

        started = await self.streams.mark_live(stream.id, datetime.now(UTC), quality)
        if started is None:
            raise InvalidTransition(STATUS_LIVE, STATUS_LIVE)

        logger.info(
            f"Stream {stream.id} is live "
            f"(quality={quality}, cleared_chat={cleared}, purged_chunks={purged})"
        )
        await publish_safely(
            self.publisher,
            started.channel,
            "stream-started",
            {
                "stream_id": started.id,
                "title": started.title,
                "status": started.status,
                "started_at": started.started_at.isoformat() if started.started_at else None,
            },
        )
        return started

    async def stop(self, stream: LiveStream, user_id: str) -> LiveStream:
        """Close the session. Only the status write is mandatory; cleanup is best effort."""
        self.ensure_owner(stream, user_id)
        if not stream.is_live:
            raise InvalidTransition(stream.status, STATUS_OFFLINE)

        stopped = await self.streams.mark_offline(stream.id, datetime.now(UTC))
        if stopped is None:
            raise InvalidTransition(STATUS_OFFLINE, STATUS_OFFLINE)
        logger.info(f"Stream {stream.id} is offline")

        await publish_safely(
            self.publisher,
            stopped.channel,
            "stream-ended",
            {
                "stream_id": stopped.id,
                "status": stopped.status,
                "ended_at": stopped.ended_at.isoformat() if stopped.ended_at else None,
            },
        )

        try:
            dropped = self.chat_limiter.forget(lambda key: key[0] == stream.id)
            logger.debug(f"Dropped {dropped} chat rate window(s) for stream {stream.id}")
        except Exception as e:
            logger.error(f"Failed to clear presence state for stream {stream.id}: {e}")

        try:
            await asyncio.to_thread(self.chunks.sweep_all, stream.id)
        except Exception as e:
            logger.error(f"Failed to clean up chunks for stream {stream.id}: {e}")

        return stopped

    # ------------------------------------------------------------------
    # Broadcaster controls
    # ------------------------------------------------------------------

    async def change_quality(self, stream: LiveStream, user_id: str, quality: str) -> LiveStream:
        self.ensure_owner(stream, user_id)
        updated = await self.streams.set_quality(stream.id, quality)
        if updated is None:
            raise StreamNotFound(stream.slug)
        await publish_safely(
            self.publisher, stream.channel, "quality-changed", {"quality": quality}
        )
        return updated

    async def update_mirror_state(
        self, stream: LiveStream, user_id: str, is_mirrored: bool
    ) -> None:
        self.ensure_owner(stream, user_id)
        await publish_safely(
            self.publisher,
            stream.channel,
            "mirror-state-changed",
            {"stream_id": stream.id, "is_mirrored": is_mirrored},
        )

    async def update_orientation(
        self, stream: LiveStream, user_id: str, orientation: str, width: int, height: int
    ) -> None:
        self.ensure_owner(stream, user_id)
        await publish_safely(
            self.publisher,
            stream.channel,
            "orientation-changed",
            {
                "stream_id": stream.id,
                "orientation": orientation,
                "width": width,
                "height": height,
            },
        )
