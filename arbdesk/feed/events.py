from enum import Enum
from typing import Mapping, Optional

from arbdesk.arbitrage import ArbitrageOpportunity
from arbdesk.events import DomainEvent, event


class SessionStatus(str, Enum):
    """Connection status of a StreamSession."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    SUBSCRIBED = "subscribed"
    ERROR = "error"


@event
class SessionStatusChangedEvent(DomainEvent):
    """Event emitted on every status transition."""

    pair: Optional[str]
    previous: SessionStatus
    status: SessionStatus


@event
class SnapshotLoadedEvent(DomainEvent):
    """Event emitted after bulk history (feed or endpoint) has been applied.

    ``origin`` is ``"feed"`` for a bulk message and ``"history"`` for a
    historical-endpoint response.
    """

    pair: str
    origin: str
    tick_count: int
    prices: Mapping[str, float]
    opportunity: Optional[ArbitrageOpportunity]


@event
class DeltaAppliedEvent(DomainEvent):
    """Event emitted after a live delta has been applied."""

    pair: str
    prices: Mapping[str, float]
    opportunity: ArbitrageOpportunity
    evaluated: Optional[ArbitrageOpportunity]
