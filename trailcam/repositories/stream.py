"""Repository for the live_streams table."""

from __future__ import annotations

import logging
from datetime import datetime

import asyncpg

from trailcam.core.cache import AsyncTTLCache, cached
from trailcam.models.stream import STATUS_LIVE, STATUS_OFFLINE, LiveStream, make_slug

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id, slug, title, description, broadcaster_id, status, current_quality, "
    "viewer_count, total_views, latest_chunk_index, thumbnail_url, started_at, ended_at, "
    "created_at, updated_at"
)

# Viewers poll status and chunks every few seconds; keep lookups briefly.
_stream_cache = AsyncTTLCache(maxsize=256, ttl=2)
_live_list_cache = AsyncTTLCache(maxsize=1, ttl=5)


def _invalidate(slug: str) -> None:
    _stream_cache.invalidate(f"stream:{slug}")
    _live_list_cache.invalidate("live")


class StreamRepository:
    """Pure SQL operations for the live_streams table."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def create(
        self,
        title: str,
        broadcaster_id: str | None,
        description: str | None = None,
        quality: str = "720p",
    ) -> LiveStream:
        """Insert a new offline stream with a generated slug."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO live_streams
                    (slug, title, description, broadcaster_id, status, current_quality)
                VALUES ($1, $2, $3, $4, $5, $6)
                RETURNING {_COLUMNS}
                """,
                make_slug(title),
                title,
                description,
                broadcaster_id,
                STATUS_OFFLINE,
                quality,
            )
            return LiveStream(**dict(row))

    @cached(cache=_stream_cache, key_func=lambda self, slug: f"stream:{slug}")
    async def get_by_slug(self, slug: str) -> LiveStream | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_COLUMNS} FROM live_streams WHERE slug = $1",
                slug,
            )
            return LiveStream(**dict(row)) if row else None

    @cached(cache=_live_list_cache, key_func=lambda self: "live")
    async def list_live(self) -> list[LiveStream]:
        """Live streams, most watched first."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT {_COLUMNS} FROM live_streams WHERE status = $1 "
                "ORDER BY viewer_count DESC, started_at DESC",
                STATUS_LIVE,
            )
            return [LiveStream(**dict(row)) for row in rows]

    async def mark_live(
        self, stream_id: int, started_at: datetime, quality: str
    ) -> LiveStream | None:
        """Transition to 'live' and reset session state.

        Returns None when the stream is already live, so concurrent starts
        cannot both succeed.
        """
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE live_streams
                SET status = $2, started_at = $3, ended_at = NULL,
                    current_quality = $4, viewer_count = 0,
                    latest_chunk_index = -1, updated_at = NOW()
                WHERE id = $1 AND status <> $2
                RETURNING {_COLUMNS}
                """,
                stream_id,
                STATUS_LIVE,
                started_at,
                quality,
            )
            if row is None:
                return None
            stream = LiveStream(**dict(row))
            _invalidate(stream.slug)
            return stream

    async def mark_offline(self, stream_id: int, ended_at: datetime) -> LiveStream | None:
        """Transition 'live' to 'offline'. Returns None when the stream was not live."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE live_streams
                SET status = $2, ended_at = $3, viewer_count = 0, updated_at = NOW()
                WHERE id = $1 AND status = $4
                RETURNING {_COLUMNS}
                """,
                stream_id,
                STATUS_OFFLINE,
                ended_at,
                STATUS_LIVE,
            )
            if row is None:
                return None
            stream = LiveStream(**dict(row))
            _invalidate(stream.slug)
            return stream

    async def increment_views(self, stream_id: int) -> None:
        async with self.pool.acquire() as conn:
            slug = await conn.fetchval(
                "UPDATE live_streams SET total_views = total_views + 1 WHERE id = $1 RETURNING slug",
                stream_id,
            )
            if slug:
                _invalidate(slug)

    async def adjust_viewer_count(self, stream_id: int, delta: int) -> int:
        """Atomically add *delta* to viewer_count, flooring at zero. Returns the new count."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                UPDATE live_streams
                SET viewer_count = GREATEST(viewer_count + $2, 0)
                WHERE id = $1
                RETURNING slug, viewer_count
                """,
                stream_id,
                delta,
            )
            if row is None:
                return 0
            _invalidate(row["slug"])
            return int(row["viewer_count"])

    async def set_viewer_count(self, stream_id: int, count: int) -> None:
        async with self.pool.acquire() as conn:
            slug = await conn.fetchval(
                "UPDATE live_streams SET viewer_count = $2 WHERE id = $1 RETURNING slug",
                stream_id,
                max(count, 0),
            )
            if slug:
                _invalidate(slug)

    async def record_chunk(self, stream_id: int, index: int) -> None:
        """Advance latest_chunk_index; never moves backwards."""
        async with self.pool.acquire() as conn:
            slug = await conn.fetchval(
                """
                UPDATE live_streams
                SET latest_chunk_index = GREATEST(latest_chunk_index, $2), updated_at = NOW()
                WHERE id = $1
                RETURNING slug
                """,
                stream_id,
                index,
            )
            if slug:
                _stream_cache.invalidate(f"stream:{slug}")

    async def set_quality(self, stream_id: int, quality: str) -> LiveStream | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE live_streams SET current_quality = $2, updated_at = NOW()
                WHERE id = $1
                RETURNING {_COLUMNS}
                """,
                stream_id,
                quality,
            )
            if row is None:
                return None
            stream = LiveStream(**dict(row))
            _invalidate(stream.slug)
            return stream

    async def set_thumbnail(self, stream_id: int, url: str) -> LiveStream | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE live_streams SET thumbnail_url = $2, updated_at = NOW()
                WHERE id = $1
                RETURNING {_COLUMNS}
                """,
                stream_id,
                url,
            )
            if row is None:
                return None
            stream = LiveStream(**dict(row))
            _invalidate(stream.slug)
            return stream
