"""Repository for the stream_analytics table."""

from __future__ import annotations

from datetime import datetime

import asyncpg

from trailcam.models.analytics import StreamAnalytic


class AnalyticsRepository:
    """Viewer-count samples per stream."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def record(
        self,
        stream_id: int,
        viewer_count: int,
        quality_level: str | None,
        timestamp: datetime,
    ) -> StreamAnalytic:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO stream_analytics (live_stream_id, timestamp, viewer_count, quality_level)
                VALUES ($1, $2, $3, $4)
                RETURNING id, live_stream_id, timestamp, viewer_count, quality_level
                """,
                stream_id,
                timestamp,
                viewer_count,
                quality_level,
            )
            return StreamAnalytic(**dict(row))
