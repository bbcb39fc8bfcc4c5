"""Data model for the live_streams table."""

from __future__ import annotations

import re
import secrets
import string
from dataclasses import dataclass
from datetime import datetime

STATUS_LIVE = "live"
STATUS_OFFLINE = "offline"
STATUS_SCHEDULED = "scheduled"

DEFAULT_QUALITY = "720p"

_SLUG_STRIP_RE = re.compile(r"[^a-z0-9]+")
_SLUG_ALPHABET = string.ascii_lowercase + string.digits


def make_slug(title: str) -> str:
    """Slugify a title and append a short random suffix, e.g. 'rinjani-summit-x8k2qa'."""
    base = _SLUG_STRIP_RE.sub("-", title.lower()).strip("-") or "stream"
    suffix = "".join(secrets.choice(_SLUG_ALPHABET) for _ in range(6))
    return f"{base[:80]}-{suffix}"


@dataclass
class LiveStream:
    """Live stream record."""

    id: int
    slug: str
    title: str
    status: str  # 'live' | 'offline' | 'scheduled'
    description: str | None = None
    broadcaster_id: str | None = None
    current_quality: str = DEFAULT_QUALITY
    viewer_count: int = 0
    total_views: int = 0
    latest_chunk_index: int = -1
    thumbnail_url: str | None = None
    started_at: datetime | None = None
    ended_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_live(self) -> bool:
        return self.status == STATUS_LIVE

    @property
    def channel(self) -> str:
        """Public pub/sub channel for this stream's events."""
        return f"stream.{self.id}"

    def is_owned_by(self, user_id: str) -> bool:
        """Unowned streams may be driven by any authenticated user."""
        return self.broadcaster_id is None or self.broadcaster_id == user_id
