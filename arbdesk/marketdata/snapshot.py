from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from arbdesk.marketdata.tick import PriceTick


class PriceSnapshotStore:
    """
    Latest observed price per exchange for the active pair.

    Keys are only exchanges that have produced at least one tick since the
    last reset; a missing key is the only "no data yet" signal. Overwriting
    an exchange keeps its original position, so iteration order is the order
    in which exchanges first reported.
    """

    def __init__(self) -> None:
        self._prices: dict[str, float] = {}

    def merge(self, ticks: Iterable[PriceTick]) -> None:
        """Apply ticks in order; the last tick per source wins."""
        for tick in ticks:
            self.apply(tick)

    def apply(self, tick: PriceTick) -> None:
        self._prices[tick.source] = tick.price

    def reset(self) -> None:
        self._prices.clear()

    def view(self) -> Mapping[str, float]:
        """Read-only live view keyed by exchange."""
        return MappingProxyType(self._prices)

    def copy(self) -> dict[str, float]:
        return dict(self._prices)

    def get(self, source: str) -> Optional[float]:
        return self._prices.get(source)

    def sources(self) -> list[str]:
        return list(self._prices)

    def __contains__(self, source: object) -> bool:
        return source in self._prices

    def __len__(self) -> int:
        return len(self._prices)

    def __repr__(self) -> str:
        return f"PriceSnapshotStore({self._prices!r})"
