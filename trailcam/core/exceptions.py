"""Domain errors raised by the service layer and translated by routers."""


class LiveCamError(Exception):
    """Base error carrying the HTTP status it maps to."""

    status_code = 500

    def __init__(self, message: str = "Internal error"):
        super().__init__(message)
        self.message = message


class StreamNotFound(LiveCamError):
    status_code = 404

    def __init__(self, slug: str):
        super().__init__(f"Stream '{slug}' not found")
        self.slug = slug


class NotBroadcaster(LiveCamError):
    status_code = 403

    def __init__(self) -> None:
        super().__init__("Unauthorized - you are not the broadcaster of this stream")


class InvalidTransition(LiveCamError):
    status_code = 409

    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move stream from '{current}' to '{target}'")
        self.current = current
        self.target = target


class StreamNotLive(LiveCamError):
    status_code = 400

    def __init__(self) -> None:
        super().__init__("Stream is not live")


class ChunkNotFound(LiveCamError):
    status_code = 404

    def __init__(self, reason: str = "Chunk not found"):
        super().__init__(reason)


class ChunkWriteError(LiveCamError):
    status_code = 500

    def __init__(self) -> None:
        super().__init__("Failed to upload chunk")


class RateLimited(LiveCamError):
    status_code = 429

    def __init__(self, wait: int):
        super().__init__("Rate limit exceeded")
        self.wait = wait


class ValidationFailed(LiveCamError):
    status_code = 422


class InvalidImage(LiveCamError):
    status_code = 400

    def __init__(self) -> None:
        super().__init__("Invalid image data")
