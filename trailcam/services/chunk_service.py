"""Segment ingestion, serving and liveness status."""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path

from trailcam.core.exceptions import ChunkNotFound, ChunkWriteError, StreamNotLive
from trailcam.models.stream import LiveStream
from trailcam.repositories import StreamRepository
from trailcam.services.publisher import Publisher, publish_safely
from trailcam.services.stream_service import StreamService
from trailcam.storage import ChunkStore
from trailcam.storage.chunks import AsyncReadable

logger = logging.getLogger(__name__)

INIT_SEGMENT_INDEX = 0


class ChunkService:
    """Relays broadcaster segments to viewers.

    Segment 0 is the container initialization segment: it is kept for the
    whole session and exempt from both eviction and the age ceiling.
    """

    def __init__(
        self,
        streams: StreamRepository,
        chunks: ChunkStore,
        publisher: Publisher,
        *,
        window: int = 20,
        max_age_seconds: float = 120,
    ) -> None:
        self.streams = streams
        self.chunks = chunks
        self.publisher = publisher
        self.window = window
        self.max_age_seconds = max_age_seconds

    async def upload(
        self, stream: LiveStream, user_id: str, index: int, source: AsyncReadable
    ) -> int:
        """Store segment *index* and announce it. Returns the stored size in bytes."""
        StreamService.ensure_owner(stream, user_id)
        if not stream.is_live:
            raise StreamNotLive()

        try:
            size = await self.chunks.write(stream.id, index, source)
        except OSError as e:
            logger.exception(f"Chunk upload failed for stream {stream.id} index {index}: {e}")
            raise ChunkWriteError() from e

        logger.debug(f"Chunk uploaded: stream={stream.id} index={index} size={size}")

        await self.streams.record_chunk(stream.id, index)
        await publish_safely(
            self.publisher, stream.channel, "new-chunk", {"stream_id": stream.id, "index": index}
        )

        if index >= self.window:
            try:
                await asyncio.to_thread(
                    self.chunks.sweep_before, stream.id, index - self.window + 1, True
                )
            except OSError as e:
                logger.error(f"Chunk eviction failed for stream {stream.id}: {e}")

        return size

    async def resolve(self, stream: LiveStream, index: int) -> Path:
        """Return the path of a servable segment or raise ChunkNotFound."""
        if not stream.is_live:
            logger.warning(
                f"Chunk {index} requested from non-live stream {stream.id} ({stream.status})"
            )
            raise ChunkNotFound("Stream is not live")

        return await asyncio.to_thread(self._check_on_disk, stream, index)

    def _check_on_disk(self, stream: LiveStream, index: int) -> Path:
        info = self.chunks.stat(stream.id, index)
        if info is None:
            raise ChunkNotFound()

        session_start = int(stream.started_at.timestamp()) if stream.started_at else 0
        if int(info.st_mtime) < session_start:
            logger.warning(f"Chunk {index} of stream {stream.id} belongs to a previous session")
            self.chunks.delete(stream.id, index)
            raise ChunkNotFound("Chunk from previous session")

        if index != INIT_SEGMENT_INDEX and time.time() - info.st_mtime > self.max_age_seconds:
            raise ChunkNotFound("Chunk too old")

        return self.chunks.chunk_path(stream.id, index)

    async def status(self, stream: LiveStream) -> dict:
        latest = -1
        oldest = -1

        if stream.is_live:
            since = stream.started_at.timestamp() if stream.started_at else None
            indices = await asyncio.to_thread(
                self.chunks.indices, stream.id, modified_since=since
            )
            if indices:
                latest = indices[-1]
                playable = [i for i in indices if i > INIT_SEGMENT_INDEX]
                oldest = playable[0] if playable else INIT_SEGMENT_INDEX

        return {
            "is_live": stream.is_live,
            "status": stream.status,
            "viewer_count": stream.viewer_count,
            "started_at": stream.started_at,
            "latest_chunk_index": latest,
            "oldest_chunk_index": oldest,
        }
