"""Error taxonomy for the feed layer.

None of these escape to the rendering boundary: the session catches them,
logs them, and reflects transport failures in its status only.
"""

__all__ = [
    "ClassificationError",
    "DecodeError",
    "FeedError",
    "StaleResultError",
    "TransportError",
]


class FeedError(Exception):
    """Base class for all feed-layer failures."""


class DecodeError(FeedError):
    """Raised when an inbound frame is not valid JSON."""


class ClassificationError(FeedError):
    """Raised when a decoded payload matches no known message shape."""


class TransportError(FeedError):
    """Raised on connection-level failures (connect, send, receive)."""


class StaleResultError(FeedError):
    """Raised when an async result arrives after a newer subscription began."""

    def __init__(self, *, requested: int, current: int, what: str = "result"):
        super().__init__(
            f"Discarding stale {what} from generation {requested} "
            f"(current generation {current})"
        )
        self.requested = requested
        self.current = current
