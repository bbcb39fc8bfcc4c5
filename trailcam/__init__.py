"""Live trail-camera relay: chunked segment upload/serving, viewer count and chat."""

__version__ = "1.0.0"
