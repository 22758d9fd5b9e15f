from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from arbdesk.time_utils import period_to_seconds

DEFAULT_FEED_URL = "ws://127.0.0.1:8081/ws/arb"

FEED_URL_ENV = "ARBDESK_FEED_URL"
HISTORY_URL_ENV = "ARBDESK_HISTORY_URL"


@dataclass(frozen=True)
class FeedConfig:
    feed_url: str = DEFAULT_FEED_URL
    history_url: Optional[str] = None
    history_sources: tuple[str, ...] = ()
    candle_period: str = "SECOND"
    max_candles: int = 200
    history_timeout: float = 10.0

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> FeedConfig:
        """Validate and construct from a raw config dict.

        Raises ``ValueError`` with a clear message on bad values instead of
        letting ``KeyError`` or ``TypeError`` propagate.
        """
        feed_url = raw.get("feed_url", DEFAULT_FEED_URL)
        if not isinstance(feed_url, str) or not feed_url.startswith(("ws://", "wss://")):
            raise ValueError(f"feed_url must be a ws:// or wss:// URL, got {feed_url!r}")

        history_url = raw.get("history_url")
        if history_url is not None and (
            not isinstance(history_url, str) or not history_url.startswith(("http://", "https://"))
        ):
            raise ValueError(f"history_url must be an http:// or https:// URL, got {history_url!r}")

        sources = raw.get("history_sources") or ()
        if not isinstance(sources, (list, tuple)) or not all(isinstance(s, str) and s for s in sources):
            raise ValueError("history_sources must be a list of exchange names")

        period = str(raw.get("candle_period", "SECOND"))
        try:
            period_to_seconds(period)
        except ValueError as exc:
            raise ValueError(f"candle_period is not a supported period: {period!r}") from exc

        try:
            max_candles = int(raw.get("max_candles", 200))
        except (TypeError, ValueError) as exc:
            raise ValueError("max_candles is not an integer") from exc
        if max_candles <= 0:
            raise ValueError("max_candles must be positive")

        try:
            history_timeout = float(raw.get("history_timeout", 10.0))
        except (TypeError, ValueError) as exc:
            raise ValueError("history_timeout is not numeric") from exc
        if history_timeout <= 0:
            raise ValueError("history_timeout must be positive")

        return cls(
            feed_url=feed_url,
            history_url=history_url,
            history_sources=tuple(sources),
            candle_period=period.strip().upper(),
            max_candles=max_candles,
            history_timeout=history_timeout,
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides: Any) -> FeedConfig:
        """Build a config from the environment.

        Only the endpoint addresses come from the environment
        (``ARBDESK_FEED_URL``, ``ARBDESK_HISTORY_URL``); everything else is
        passed as keyword overrides.
        """
        env = os.environ if environ is None else environ
        raw: dict[str, Any] = dict(overrides)
        if env.get(FEED_URL_ENV):
            raw["feed_url"] = env[FEED_URL_ENV]
        if env.get(HISTORY_URL_ENV):
            raw["history_url"] = env[HISTORY_URL_ENV]
        return cls.from_raw(raw)
