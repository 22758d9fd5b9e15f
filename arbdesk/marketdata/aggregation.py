"""Tick to candle aggregation."""

import logging
from datetime import datetime
from typing import Iterator, Optional

from arbdesk.marketdata.candle import Candle, CandleUpdate, Trend
from arbdesk.marketdata.chart_history import ChartHistory
from arbdesk.marketdata.tick import PriceTick
from arbdesk.time_utils import bucket_start, now_utc, period_to_seconds


log = logging.getLogger(__name__)


__all__ = [
    "CandleAggregator",
    "CandleBook",
]


class CandleAggregator:
    """
    Fold a tick stream for one (source, pair) into OHLC candles using
    wall-clock bucketing.

    - Buckets are aligned to period boundaries (UTC epoch grid).
    - A new candle opens only when a tick's bucket is strictly later than the
      live candle's bucket; ticks in the same bucket extend it.
    - Ticks from an earlier bucket (clock skew, late delivery) are ignored so
      bucket times stay strictly increasing.
    - Superseded candles are appended to ``history``.

    Usage:
        aggregator = CandleAggregator(source="Binance", pair="SOL/USDT")
        update = aggregator.ingest(tick)
        # update.closed is the finished candle when a new bucket opened
    """

    def __init__(self, *, source: str, pair: str, period: str = "SECOND", max_length: int = 200):
        """
        Initialize aggregator.

        Args:
            source: Exchange identifier
            pair: Pair identifier
            period: Bucket period (e.g. "SECOND", "1MINUTE")
            max_length: Number of completed candles retained in history
        """
        self.source = source
        self.pair = pair
        self.period = period.strip().upper()
        self.period_s = period_to_seconds(self.period)

        self.history = ChartHistory(source, pair, max_length=max_length)
        self._current: Optional[Candle] = None
        self._last_price: Optional[float] = None
        self._trend = Trend.FLAT

    @property
    def current(self) -> Optional[Candle]:
        """The live (not yet closed) candle."""
        return self._current

    @property
    def trend(self) -> Trend:
        return self._trend

    @property
    def last_price(self) -> Optional[float]:
        return self._last_price

    def candles(self) -> list[Candle]:
        """Completed candles followed by the live one, oldest first."""
        out = self.history.window()
        if self._current is not None:
            out.append(self._current)
        return out

    def ingest(self, tick: PriceTick, *, received_at: Optional[datetime] = None) -> Optional[CandleUpdate]:
        """
        Fold one tick into the candle series.

        Args:
            tick: Price tick for this aggregator's source and pair
            received_at: Receipt time, used when the tick carries no timestamp

        Returns:
            The resulting update, or None when the tick belongs to an earlier
            bucket than the live candle and was ignored
        """
        ts = tick.timestamp_or(received_at or now_utc())
        bucket = bucket_start(ts, self.period_s)
        price = tick.price

        current = self._current
        closed: Optional[Candle] = None

        if current is None or bucket > current.bucket_time:
            candle = Candle.opened_at(bucket, price)
            closed = current
        elif bucket == current.bucket_time:
            candle = current.extended(price)
        else:
            log.debug(
                "Ignoring out-of-order tick for %s %s: bucket %d < %d",
                self.source,
                self.pair,
                bucket,
                current.bucket_time,
            )
            return None

        trend = self._trend.after_move(self._last_price, price)

        # Commit only once everything has been computed.
        if closed is not None:
            self.history.append(closed)
        self._current = candle
        self._last_price = price
        self._trend = trend

        return CandleUpdate(
            source=self.source,
            pair=self.pair,
            candle=candle,
            closed=closed,
            trend=trend,
        )

    def __repr__(self) -> str:
        return (
            f"CandleAggregator(source={self.source}, pair={self.pair}, "
            f"period={self.period}, closed={len(self.history)})"
        )


class CandleBook:
    """
    One CandleAggregator per (source, pair), created on first tick.

    A book belongs to exactly one subscription and is discarded with it.
    """

    def __init__(self, *, period: str = "SECOND", max_length: int = 200):
        self.period = period
        self.max_length = max_length
        # Validate early so a bad period fails at construction, not on first tick.
        period_to_seconds(period)
        self._aggregators: dict[tuple[str, str], CandleAggregator] = {}

    def aggregator(self, source: str, pair: str) -> CandleAggregator:
        key = (source, pair)
        agg = self._aggregators.get(key)
        if agg is None:
            agg = CandleAggregator(
                source=source,
                pair=pair,
                period=self.period,
                max_length=self.max_length,
            )
            self._aggregators[key] = agg
        return agg

    def get(self, source: str, pair: str) -> Optional[CandleAggregator]:
        return self._aggregators.get((source, pair))

    def ingest(self, tick: PriceTick, *, received_at: Optional[datetime] = None) -> Optional[CandleUpdate]:
        return self.aggregator(tick.source, tick.pair).ingest(tick, received_at=received_at)

    def candles(self, source: str, pair: str) -> list[Candle]:
        agg = self.get(source, pair)
        return agg.candles() if agg is not None else []

    def keys(self) -> list[tuple[str, str]]:
        return list(self._aggregators)

    def __iter__(self) -> Iterator[CandleAggregator]:
        return iter(list(self._aggregators.values()))

    def __len__(self) -> int:
        return len(self._aggregators)
