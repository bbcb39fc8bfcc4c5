"""Repository layer for the live-cam tables."""

from .analytics import AnalyticsRepository
from .chat import ChatRepository
from .stream import StreamRepository

__all__ = [
    "AnalyticsRepository",
    "ChatRepository",
    "StreamRepository",
]
