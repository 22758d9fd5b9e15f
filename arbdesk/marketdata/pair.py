from dataclasses import dataclass


@dataclass(frozen=True)
class Pair:
    """
    A normalised trading pair identifier.

    The canonical string form is ``"{BASE}/{QUOTE}"`` in upper case. This is
    the key under which a stream session subscribes and the form that appears
    in price ticks and arbitrage opportunities.

    Attributes:
        base: The asset being priced (e.g. 'SOL').
        quote: The asset the price is expressed in (e.g. 'USDT').

    Example:
        >>> Pair.parse(" sol/usdt ")
        Pair(base='SOL', quote='USDT')
        >>> str(Pair("SOL", "USDC"))
        'SOL/USDC'
    """
    base: str
    quote: str

    def __post_init__(self) -> None:
        for label, value in (("base", self.base), ("quote", self.quote)):
            if not isinstance(value, str) or not value.strip():
                raise ValueError(f"Pair {label} must be a non-empty string, got {value!r}")
            if "/" in value:
                raise ValueError(f"Pair {label} must not contain '/', got {value!r}")
        # Frozen dataclass: normalise through object.__setattr__.
        object.__setattr__(self, "base", self.base.strip().upper())
        object.__setattr__(self, "quote", self.quote.strip().upper())

    @classmethod
    def parse(cls, value: "str | Pair") -> "Pair":
        """Parse ``"base/quote"`` (any case, surrounding whitespace allowed)."""
        if isinstance(value, Pair):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Pair must be a string like 'SOL/USDT', got {value!r}")
        parts = value.split("/")
        if len(parts) != 2:
            raise ValueError(f"Pair must look like 'BASE/QUOTE', got {value!r}")
        return cls(parts[0], parts[1])

    def subscription_intent(self) -> dict[str, str]:
        """The message sent to the feed to subscribe to this pair."""
        return {"token_a": self.base, "token_b": self.quote}

    def __str__(self) -> str:
        return f"{self.base}/{self.quote}"


def normalize_pair(value: str) -> str:
    """
    Normalise a pair string as it arrives from the feed.

    Well-formed pairs are canonicalised; anything else is upper-cased and
    stripped but otherwise kept, since the feed is the authority on the
    pairs it reports.
    """
    try:
        return str(Pair.parse(value))
    except ValueError:
        return value.strip().upper()
