"""Segment and thumbnail storage."""

from .chunks import ChunkStore, SweepReport
from .thumbnails import ThumbnailStore

__all__ = ["ChunkStore", "SweepReport", "ThumbnailStore"]
