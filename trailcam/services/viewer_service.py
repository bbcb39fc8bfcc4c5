"""Approximate concurrent viewer tracking."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from trailcam.core.exceptions import ValidationFailed
from trailcam.models.stream import LiveStream
from trailcam.repositories import AnalyticsRepository, StreamRepository
from trailcam.services.publisher import Publisher, publish_safely

logger = logging.getLogger(__name__)

# Legacy absolute counts only land when they move by at least this much
SIGNIFICANT_CHANGE = 5

_DELTAS = {"join": 1, "leave": -1}


class ViewerService:
    """Applies join/leave signals and republishes the resulting count.

    Join/leave use a single ``UPDATE ... RETURNING`` so concurrent signals
    never lose an increment and the count cannot go below zero.
    """

    def __init__(
        self,
        streams: StreamRepository,
        analytics: AnalyticsRepository,
        publisher: Publisher,
    ) -> None:
        self.streams = streams
        self.analytics = analytics
        self.publisher = publisher

    async def apply_action(self, stream: LiveStream, action: str) -> int:
        delta = _DELTAS.get(action)
        if delta is None:
            raise ValidationFailed(f"Invalid action '{action}', expected 'join' or 'leave'")

        count = await self.streams.adjust_viewer_count(stream.id, delta)
        await publish_safely(
            self.publisher, stream.channel, "viewer-count-updated", {"count": count}
        )
        return count

    async def apply_count(self, stream: LiveStream, count: int) -> int:
        """Legacy absolute update from a client-side presence tally."""
        if count < 0:
            raise ValidationFailed("count must be a non-negative integer")

        if abs(count - stream.viewer_count) >= SIGNIFICANT_CHANGE:
            await self.streams.set_viewer_count(stream.id, count)
            await self.analytics.record(
                stream.id, count, stream.current_quality, datetime.now(UTC)
            )
            logger.debug(f"Stream {stream.id} viewer count {stream.viewer_count} -> {count}")
            await publish_safely(
                self.publisher, stream.channel, "viewer-count-updated", {"count": count}
            )
        return count
