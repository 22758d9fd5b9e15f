from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from arbdesk.time_utils import epoch_to_iso


class Trend(str, Enum):
    """Direction of the most recent price move for one (source, pair).

    Purely advisory (e.g. candle colour); it never feeds into OHLC values.
    """
    UP = "up"
    DOWN = "down"
    FLAT = "flat"

    def after_move(self, previous_price: Optional[float], price: float) -> "Trend":
        """Return the signal after a move from *previous_price* to *price*.

        An unchanged price (or no previous price) keeps the current signal.
        """
        if previous_price is None or price == previous_price:
            return self
        return Trend.UP if price > previous_price else Trend.DOWN


@dataclass(frozen=True)
class Candle:
    """
    Represents a single OHLC candle for one time bucket.

    Candles are immutable: extending the live candle produces a new instance,
    so a candle handed out as closed can never change afterwards.

    Attributes:
        bucket_time: Bucket start, in epoch seconds
        open: First price in the bucket
        high: Highest price in the bucket
        low: Lowest price in the bucket
        close: Last price in the bucket
        tick_count: Number of ticks folded into the bucket
    """

    bucket_time: int
    open: float
    high: float
    low: float
    close: float
    tick_count: int = 1

    @classmethod
    def opened_at(cls, bucket_time: int, price: float) -> "Candle":
        """Open a new candle from its first tick."""
        return cls(
            bucket_time=bucket_time,
            open=price,
            high=price,
            low=price,
            close=price,
        )

    def extended(self, price: float) -> "Candle":
        """Return this candle with one more tick folded in."""
        return replace(
            self,
            high=max(self.high, price),
            low=min(self.low, price),
            close=price,
            tick_count=self.tick_count + 1,
        )

    @property
    def time(self) -> str:
        """Bucket start as an ISO 8601 string."""
        return epoch_to_iso(self.bucket_time)

    @property
    def mid(self) -> float:
        """Calculate midpoint between high and low."""
        return (self.high + self.low) / 2

    @property
    def range(self) -> float:
        """Calculate candle range (high - low)."""
        return self.high - self.low

    @property
    def is_bullish(self) -> bool:
        return self.close >= self.open

    def __repr__(self) -> str:
        return (
            f"Candle(bucket_time={self.bucket_time}, "
            f"O={self.open:.5f}, H={self.high:.5f}, "
            f"L={self.low:.5f}, C={self.close:.5f}, "
            f"N={self.tick_count})"
        )


@dataclass(frozen=True)
class CandleUpdate:
    """Outcome of folding one tick into a (source, pair) candle series.

    Attributes:
        source: Exchange identifier
        pair: Pair identifier
        candle: The live candle after the tick
        closed: The candle superseded by this tick, if a new bucket opened
        trend: Trend signal after the tick
    """

    source: str
    pair: str
    candle: Candle
    closed: Optional[Candle]
    trend: Trend
