"""
arbdesk - live multi-exchange price synchronisation and candle aggregation.

Keeps one streaming subscription to a price feed, merges per-exchange prices
into a snapshot, folds ticks into per-second OHLC candles, and tracks the
cross-exchange arbitrage opportunity for display.
"""

from .arbitrage import ArbitrageOpportunity, evaluate
from .config import FeedConfig
from .events import EventDispatcher
from .feed import (
    DeltaAppliedEvent,
    SessionStatus,
    SessionStatusChangedEvent,
    SnapshotLoadedEvent,
    StreamSession,
)
from .marketdata import Candle, CandleAggregator, Pair, PriceSnapshotStore, PriceTick, Trend
from .marketdata.events import CandleClosedEvent, CandleUpdatedEvent
from .runner import configure_logging, run_feed
from .state import SubscriptionState

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "ArbitrageOpportunity",
    "Candle",
    "CandleAggregator",
    "CandleClosedEvent",
    "CandleUpdatedEvent",
    "DeltaAppliedEvent",
    "EventDispatcher",
    "FeedConfig",
    "Pair",
    "PriceSnapshotStore",
    "PriceTick",
    "SessionStatus",
    "SessionStatusChangedEvent",
    "SnapshotLoadedEvent",
    "StreamSession",
    "SubscriptionState",
    "Trend",
    "configure_logging",
    "evaluate",
    "run_feed",
]
