"""
Per-subscription market state.

A SubscriptionState is created when a session subscribes to a pair and is
dropped when that subscription ends. It is never reset or reused, so nothing
observed under one pair can surface under another.
"""

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Iterable, Optional

from arbdesk.arbitrage import ArbitrageOpportunity, evaluate, opportunity_agrees
from arbdesk.marketdata.aggregation import CandleBook
from arbdesk.marketdata.candle import Candle, CandleUpdate
from arbdesk.marketdata.snapshot import PriceSnapshotStore
from arbdesk.marketdata.tick import PriceTick

if TYPE_CHECKING:
    from arbdesk.feed.messages import LiveDelta


log = logging.getLogger(__name__)


__all__ = ["SubscriptionState"]


class SubscriptionState:
    """
    Price snapshot, candle series and opportunity for one active pair.

    Args:
        pair: Active pair identifier
        period: Candle bucket period
        max_candles: Completed candles retained per (source, pair)
    """

    def __init__(self, pair: str, *, period: str = "SECOND", max_candles: int = 200):
        self.pair = pair
        self.snapshot = PriceSnapshotStore()
        self.candles = CandleBook(period=period, max_length=max_candles)
        self.feed_opportunity: Optional[ArbitrageOpportunity] = None

    def apply_tick(self, tick: PriceTick, received_at: datetime) -> Optional[CandleUpdate]:
        """Fold one tick into the candle series and the snapshot."""
        update = self.candles.ingest(tick, received_at=received_at)
        self.snapshot.apply(tick)
        return update

    def apply_ticks(self, ticks: Iterable[PriceTick], received_at: datetime) -> list[CandleUpdate]:
        """Fold ticks in order. Returns the candle updates that were produced."""
        updates = []
        for tick in ticks:
            update = self.apply_tick(tick, received_at)
            if update is not None:
                updates.append(update)
        return updates

    def apply_bulk(self, ticks: Iterable[PriceTick], received_at: datetime) -> list[CandleUpdate]:
        return self.apply_ticks(ticks, received_at)

    def apply_delta(self, delta: "LiveDelta", received_at: datetime) -> list[CandleUpdate]:
        updates = self.apply_ticks(delta.ticks, received_at)
        self.feed_opportunity = delta.opportunity

        computed = self.evaluated_opportunity
        if not opportunity_agrees(delta.opportunity, computed, tolerance=1e-6):
            log.debug(
                "Feed opportunity for %s differs from recomputed value: feed=%s computed=%s",
                self.pair,
                delta.opportunity,
                computed,
            )
        return updates

    @property
    def evaluated_opportunity(self) -> Optional[ArbitrageOpportunity]:
        """Opportunity recomputed from the current snapshot."""
        return evaluate(self.snapshot.view(), self.pair)

    @property
    def opportunity(self) -> Optional[ArbitrageOpportunity]:
        """Opportunity to display: the feed's when known, else the recomputed one."""
        if self.feed_opportunity is not None:
            return self.feed_opportunity
        return self.evaluated_opportunity

    def candles_for(self, source: str, pair: Optional[str] = None) -> list[Candle]:
        return self.candles.candles(source, pair or self.pair)

    def __repr__(self) -> str:
        return (
            f"SubscriptionState(pair={self.pair}, sources={self.snapshot.sources()}, "
            f"series={len(self.candles)})"
        )
