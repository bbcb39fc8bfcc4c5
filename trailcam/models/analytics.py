"""Data model for the stream_analytics table."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class StreamAnalytic:
    """Viewer-count sample recorded on significant changes."""

    id: int
    live_stream_id: int
    timestamp: datetime
    viewer_count: int
    quality_level: str | None = None
