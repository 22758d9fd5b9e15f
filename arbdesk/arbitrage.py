"""Cross-exchange arbitrage evaluation.

The feed supplies its own opportunity with every live delta and that value is
what gets displayed. ``evaluate`` recomputes it from a price snapshot, both to
check the feed and to have something to show when only bulk history has
arrived.
"""

import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from arbdesk.errors import ClassificationError


__all__ = [
    "ArbitrageOpportunity",
    "evaluate",
    "opportunity_agrees",
]


@dataclass(frozen=True)
class ArbitrageOpportunity:
    """Best venue to buy and best venue to sell a pair, with the spread between them."""

    pair: str
    best_buy_source: str
    best_buy_price: float
    best_sell_source: str
    best_sell_price: float
    spread_percent: float

    @classmethod
    def from_feed(cls, record: Any) -> "ArbitrageOpportunity":
        """Parse the feed's ``opportunity`` record.

        Raises:
            ClassificationError: if the record is missing fields or has
                non-numeric prices.
        """
        if not isinstance(record, Mapping):
            raise ClassificationError(f"opportunity must be an object, got {type(record).__name__}")
        try:
            return cls(
                pair=_require_str(record, "pair"),
                best_buy_source=_require_str(record, "best_buy_source"),
                best_buy_price=_require_number(record, "best_buy_price"),
                best_sell_source=_require_str(record, "best_sell_source"),
                best_sell_price=_require_number(record, "best_sell_price"),
                spread_percent=_require_number(record, "spread_percent"),
            )
        except KeyError as exc:
            raise ClassificationError(f"opportunity is missing field {exc.args[0]!r}") from exc

    def to_dict(self) -> dict[str, Any]:
        return {
            "pair": self.pair,
            "best_buy_source": self.best_buy_source,
            "best_buy_price": self.best_buy_price,
            "best_sell_source": self.best_sell_source,
            "best_sell_price": self.best_sell_price,
            "spread_percent": self.spread_percent,
        }


def _require_str(record: Mapping[str, Any], key: str) -> str:
    value = record[key]
    if not isinstance(value, str):
        raise ClassificationError(f"opportunity.{key} must be a string, got {value!r}")
    return value


def _require_number(record: Mapping[str, Any], key: str) -> float:
    value = record[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ClassificationError(f"opportunity.{key} must be a finite number, got {value!r}")
    return float(value)


def evaluate(snapshot: Mapping[str, Optional[float]], pair: str) -> Optional[ArbitrageOpportunity]:
    """
    Compute the best buy/sell venues from a price snapshot.

    Ties resolve to the earliest key in snapshot order: the best buy is the
    first exchange at the minimum price, the best sell is the first exchange
    at the maximum price among the remaining exchanges.

    Args:
        snapshot: Exchange identifier to latest price
        pair: Pair the snapshot belongs to

    Returns:
        The opportunity, or None when fewer than two exchanges have a price
        or the best buy price is not positive
    """
    priced = [(source, price) for source, price in snapshot.items() if price is not None]
    if len(priced) < 2:
        return None

    buy_source, buy_price = priced[0]
    for source, price in priced[1:]:
        if price < buy_price:
            buy_source, buy_price = source, price

    if buy_price <= 0:
        return None

    sell_source: Optional[str] = None
    sell_price = 0.0
    for source, price in priced:
        if source == buy_source:
            continue
        if sell_source is None or price > sell_price:
            sell_source, sell_price = source, price

    if sell_source is None or sell_source == buy_source:
        return None

    return ArbitrageOpportunity(
        pair=pair,
        best_buy_source=buy_source,
        best_buy_price=buy_price,
        best_sell_source=sell_source,
        best_sell_price=sell_price,
        spread_percent=(sell_price - buy_price) / buy_price * 100,
    )


def opportunity_agrees(
    feed: Optional[ArbitrageOpportunity],
    computed: Optional[ArbitrageOpportunity],
    *,
    tolerance: float = 1e-6,
) -> bool:
    """
    Check that a feed-supplied opportunity matches a recomputed one.

    Venues must match exactly; prices and spread within *tolerance*
    (absolute). Two missing opportunities agree.
    """
    if feed is None or computed is None:
        return feed is None and computed is None

    if (feed.best_buy_source, feed.best_sell_source) != (
        computed.best_buy_source,
        computed.best_sell_source,
    ):
        return False

    return all(
        math.isclose(a, b, rel_tol=0.0, abs_tol=tolerance)
        for a, b in (
            (feed.best_buy_price, computed.best_buy_price),
            (feed.best_sell_price, computed.best_sell_price),
            (feed.spread_percent, computed.spread_percent),
        )
    )
