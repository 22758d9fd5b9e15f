import numpy as np
import pytest

from arbdesk.marketdata.candle import Candle
from arbdesk.marketdata.chart_history import ChartHistory


def _candle(t: int, close: float) -> Candle:
    return Candle(bucket_time=t, open=close - 1, high=close + 1, low=close - 2, close=close, tick_count=t % 3 + 1)


@pytest.fixture
def history():
    h = ChartHistory("Binance", "SOL/USDT")
    for t, close in [(1, 10.0), (2, 11.0), (3, 12.5)]:
        h.append(_candle(t, close))
    return h


class TestChartHistory:

    def test_empty(self):
        empty = ChartHistory("Binance", "SOL/USDT")
        assert len(empty) == 0
        assert empty.latest is None
        assert empty.window() == []
        assert empty.column("close").size == 0
        assert empty.ohlc().shape == (0, 4)

    def test_columns(self, history):
        np.testing.assert_array_equal(history.column("bucket_time"), [1, 2, 3])
        np.testing.assert_allclose(history.column("close"), [10.0, 11.0, 12.5])
        np.testing.assert_allclose(history.column("high", count=2), [12.0, 13.5])
        np.testing.assert_array_equal(history.column("tick_count"), [2, 3, 1])
        assert history.column("bucket_time").dtype == np.int64

    def test_unknown_column(self, history):
        with pytest.raises(ValueError, match="volume"):
            history.column("volume")

    def test_ohlc_matrix(self, history):
        bars = history.ohlc(count=1)
        assert bars.shape == (1, 4)
        np.testing.assert_allclose(bars[0], [11.5, 13.5, 10.5, 12.5])

    def test_latest_and_iteration(self, history):
        assert history.latest.close == 12.5
        assert [c.bucket_time for c in history] == [1, 2, 3]

    def test_max_length_drops_oldest(self):
        h = ChartHistory("Binance", "SOL/USDT", max_length=2)
        for t in range(5):
            h.append(_candle(t, float(t) + 5))

        assert len(h) == 2
        assert [c.bucket_time for c in h.window()] == [3, 4]

    def test_rejects_non_increasing_bucket(self, history):
        with pytest.raises(ValueError):
            history.append(_candle(3, 1.0))
        with pytest.raises(ValueError):
            history.append(_candle(2, 1.0))
        assert len(history) == 3

    def test_window_bounds(self, history):
        assert history.window(0) == []
        assert history.window(-3) == []
        assert len(history.window(10)) == 3

    def test_rejects_non_positive_max_length(self):
        with pytest.raises(ValueError):
            ChartHistory("Binance", "SOL/USDT", max_length=0)
