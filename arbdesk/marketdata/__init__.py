from .aggregation import CandleAggregator, CandleBook
from .candle import Candle, CandleUpdate, Trend
from .chart_history import ChartHistory
from .pair import Pair, normalize_pair
from .snapshot import PriceSnapshotStore
from .tick import PriceTick

__all__ = [
    "Candle",
    "CandleAggregator",
    "CandleBook",
    "CandleUpdate",
    "ChartHistory",
    "Pair",
    "PriceSnapshotStore",
    "PriceTick",
    "Trend",
    "normalize_pair",
]
