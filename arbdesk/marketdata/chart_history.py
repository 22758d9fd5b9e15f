from collections import deque
from typing import Iterator, Optional

import numpy as np

from arbdesk.marketdata.candle import Candle


class ChartHistory:
    """
    Bounded, time-ordered store of closed candles for one (source, pair).

    Renderers pull numpy columns straight out of it:

        history = ChartHistory("Binance", "SOL/USDT", max_length=200)
        history.append(candle)

        times = history.column("bucket_time")
        bars = history.ohlc(count=60)  # shape (n, 4): open, high, low, close

    Once ``max_length`` candles are held, appending drops the oldest.
    """

    COLUMNS = {
        "bucket_time": np.int64,
        "open": np.float64,
        "high": np.float64,
        "low": np.float64,
        "close": np.float64,
        "tick_count": np.int64,
    }

    def __init__(self, source: str, pair: str, max_length: int = 200):
        if max_length <= 0:
            raise ValueError(f"max_length must be positive, got {max_length}")
        self.source = source
        self.pair = pair
        self.max_length = max_length
        self._candles: deque[Candle] = deque(maxlen=max_length)

    def append(self, candle: Candle) -> None:
        """
        Store a closed candle.

        Raises:
            ValueError: if its bucket is not after the latest stored bucket
        """
        if self._candles and candle.bucket_time <= self._candles[-1].bucket_time:
            raise ValueError(
                f"{self.source} {self.pair}: bucket {candle.bucket_time} is not after "
                f"{self._candles[-1].bucket_time}"
            )
        self._candles.append(candle)

    def window(self, count: Optional[int] = None) -> list[Candle]:
        """The newest *count* candles (all when None), oldest first."""
        if count is None:
            return list(self._candles)
        if count <= 0:
            return []
        start = max(len(self._candles) - count, 0)
        return [self._candles[i] for i in range(start, len(self._candles))]

    def column(self, name: str, count: Optional[int] = None) -> np.ndarray:
        """One candle field as an array, e.g. ``column("close", 20)``."""
        try:
            dtype = self.COLUMNS[name]
        except KeyError:
            raise ValueError(f"Unknown candle column {name!r}") from None
        return np.fromiter(
            (getattr(c, name) for c in self.window(count)),
            dtype=dtype,
        )

    def ohlc(self, count: Optional[int] = None) -> np.ndarray:
        candles = self.window(count)
        if not candles:
            return np.empty((0, 4), dtype=np.float64)
        return np.array([(c.open, c.high, c.low, c.close) for c in candles], dtype=np.float64)

    @property
    def latest(self) -> Optional[Candle]:
        return self._candles[-1] if self._candles else None

    def __iter__(self) -> Iterator[Candle]:
        return iter(self.window())

    def __len__(self) -> int:
        return len(self._candles)

    def __repr__(self) -> str:
        return f"ChartHistory({self.source} {self.pair}, {len(self)}/{self.max_length} candles)"
