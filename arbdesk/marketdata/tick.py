import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class PriceTick:
    """
    One observed price for one exchange.

    Attributes:
        source: Exchange identifier (e.g. 'Binance'), used as a mapping key
        pair: Pair identifier, normalised to 'BASE/QUOTE'
        price: Positive, finite price
        observed_at: UTC-aware observation time; None means "use receipt time"
    """

    source: str
    pair: str
    price: float
    observed_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if not isinstance(self.source, str) or not self.source:
            raise ValueError(f"Tick source must be a non-empty string, got {self.source!r}")
        if not isinstance(self.pair, str) or not self.pair:
            raise ValueError(f"Tick pair must be a non-empty string, got {self.pair!r}")
        if isinstance(self.price, bool) or not isinstance(self.price, (int, float)):
            raise ValueError(f"Tick price must be numeric, got {self.price!r}")
        if not math.isfinite(self.price) or self.price <= 0:
            raise ValueError(f"Tick price must be positive and finite, got {self.price!r}")
        object.__setattr__(self, "price", float(self.price))

    def timestamp_or(self, received_at: datetime) -> datetime:
        """Observation time, falling back to *received_at*."""
        return self.observed_at if self.observed_at is not None else received_at
