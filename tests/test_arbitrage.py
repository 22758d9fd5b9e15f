"""Tests for arbdesk.arbitrage – opportunity evaluation."""

import pytest

from arbdesk.arbitrage import ArbitrageOpportunity, evaluate, opportunity_agrees
from arbdesk.errors import ClassificationError


FEED_OPPORTUNITY = {
    "pair": "SOL/USDT",
    "best_buy_source": "Jupiter",
    "best_buy_price": 140.0,
    "best_sell_source": "Binance",
    "best_sell_price": 141.4,
    "spread_percent": 1.0,
}


class TestEvaluate:

    def test_two_exchanges(self):
        opp = evaluate({"A": 100.0, "B": 105.0}, "SOL/USDT")

        assert opp is not None
        assert opp.pair == "SOL/USDT"
        assert opp.best_buy_source == "A"
        assert opp.best_buy_price == 100.0
        assert opp.best_sell_source == "B"
        assert opp.best_sell_price == 105.0
        assert opp.spread_percent == pytest.approx(5.0)

    def test_picks_extremes_among_many(self):
        opp = evaluate({"A": 102.0, "B": 99.0, "C": 104.0, "D": 100.0}, "SOL/USDT")
        assert (opp.best_buy_source, opp.best_sell_source) == ("B", "C")
        assert opp.spread_percent == pytest.approx(5 / 99 * 100)

    def test_single_exchange_has_no_opportunity(self):
        assert evaluate({"A": 100.0}, "SOL/USDT") is None

    def test_empty_snapshot_has_no_opportunity(self):
        assert evaluate({}, "SOL/USDT") is None

    def test_missing_prices_are_skipped(self):
        assert evaluate({"A": 100.0, "B": None}, "SOL/USDT") is None
        opp = evaluate({"A": 100.0, "B": None, "C": 101.0}, "SOL/USDT")
        assert (opp.best_buy_source, opp.best_sell_source) == ("A", "C")

    def test_equal_prices_use_first_key_for_buy(self):
        opp = evaluate({"A": 100.0, "B": 100.0}, "SOL/USDT")
        assert opp.best_buy_source == "A"
        assert opp.best_sell_source == "B"
        assert opp.spread_percent == 0.0

    def test_ties_resolve_by_snapshot_order(self):
        opp = evaluate({"A": 101.0, "B": 100.0, "C": 100.0, "D": 101.0}, "SOL/USDT")
        assert (opp.best_buy_source, opp.best_sell_source) == ("B", "A")

    def test_non_positive_buy_price(self):
        assert evaluate({"A": 0.0, "B": 100.0}, "SOL/USDT") is None
        assert evaluate({"A": -1.0, "B": 100.0}, "SOL/USDT") is None

    def test_spread_is_never_negative(self):
        opp = evaluate({"A": 105.0, "B": 100.0, "C": 103.0}, "SOL/USDT")
        assert opp.best_sell_price >= opp.best_buy_price
        assert opp.spread_percent >= 0


class TestFromFeed:

    def test_parses_record(self):
        opp = ArbitrageOpportunity.from_feed(FEED_OPPORTUNITY)
        assert opp.best_buy_source == "Jupiter"
        assert opp.spread_percent == 1.0
        assert opp.to_dict() == FEED_OPPORTUNITY

    def test_integer_prices_become_floats(self):
        opp = ArbitrageOpportunity.from_feed({**FEED_OPPORTUNITY, "best_buy_price": 140})
        assert isinstance(opp.best_buy_price, float)

    def test_missing_field(self):
        record = dict(FEED_OPPORTUNITY)
        del record["spread_percent"]
        with pytest.raises(ClassificationError, match="spread_percent"):
            ArbitrageOpportunity.from_feed(record)

    @pytest.mark.parametrize(
        "key, value",
        [
            ("best_buy_price", "140"),
            ("best_sell_price", None),
            ("spread_percent", float("nan")),
            ("spread_percent", True),
            ("best_buy_source", 7),
        ],
    )
    def test_wrong_types(self, key, value):
        with pytest.raises(ClassificationError):
            ArbitrageOpportunity.from_feed({**FEED_OPPORTUNITY, key: value})

    def test_not_a_mapping(self):
        with pytest.raises(ClassificationError):
            ArbitrageOpportunity.from_feed(["SOL/USDT"])


class TestOpportunityAgrees:

    def test_recomputed_matches_feed(self):
        computed = evaluate({"Binance": 141.4, "Jupiter": 140.0}, "SOL/USDT")
        feed = ArbitrageOpportunity.from_feed(FEED_OPPORTUNITY)
        assert opportunity_agrees(feed, computed)

    def test_different_venues_disagree(self):
        computed = evaluate({"Binance": 139.0, "Jupiter": 140.0}, "SOL/USDT")
        feed = ArbitrageOpportunity.from_feed(FEED_OPPORTUNITY)
        assert not opportunity_agrees(feed, computed)

    def test_none_handling(self):
        feed = ArbitrageOpportunity.from_feed(FEED_OPPORTUNITY)
        assert opportunity_agrees(None, None)
        assert not opportunity_agrees(feed, None)
        assert not opportunity_agrees(None, feed)
