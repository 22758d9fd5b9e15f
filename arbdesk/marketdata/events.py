from arbdesk.events import DomainEvent, event

from .candle import Candle, Trend


@event
class CandleUpdatedEvent(DomainEvent):
    """Event emitted whenever a tick changes the live candle."""

    source: str
    pair: str
    candle: Candle
    trend: Trend


@event
class CandleClosedEvent(DomainEvent):
    """Event emitted when a candle is superseded by a later bucket."""

    source: str
    pair: str
    candle: Candle
