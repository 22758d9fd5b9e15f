"""
Feed connectivity.

This package owns the streaming connection to the price feed, the decoding of
its messages, and the historical-data request.
"""

from .events import (
    DeltaAppliedEvent,
    SessionStatus,
    SessionStatusChangedEvent,
    SnapshotLoadedEvent,
)
from .history import HistoryClient
from .messages import BulkSnapshot, LiveDelta, classify, decode_message
from .session import StreamSession
from .transport import AiohttpTransport, Connection, Transport

__all__ = [
    "AiohttpTransport",
    "BulkSnapshot",
    "Connection",
    "DeltaAppliedEvent",
    "HistoryClient",
    "LiveDelta",
    "SessionStatus",
    "SessionStatusChangedEvent",
    "SnapshotLoadedEvent",
    "StreamSession",
    "Transport",
    "classify",
    "decode_message",
]
