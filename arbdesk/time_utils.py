"""Centralised timestamp handling.

All timestamp parsing and bucketing goes through this module.
Internal representation: UTC-aware ``datetime``.
Integer epoch seconds used only for candle bucket times.
"""

import math
import re
from datetime import datetime, timezone


# ---------------------------------------------------------------------------
# Core conversions
# ---------------------------------------------------------------------------


def now_utc() -> datetime:
    """Current time as a UTC-aware datetime."""
    return datetime.now(timezone.utc)


_SLASH_DATE = re.compile(r"^(\d{4})/(\d{2})/(\d{2})")


def _from_millis(ms: float) -> datetime:
    if not math.isfinite(ms):
        raise ValueError(f"Not a timestamp: {ms!r}")
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def parse_timestamp(ts: str | int | float) -> datetime:
    """Parse a feed or history timestamp to a UTC-aware datetime.

    Numbers, and strings holding a number, are milliseconds since the epoch.
    Other strings are ISO 8601 with a ``T`` or space separator, an optional
    ``Z`` or offset suffix and optionally ``YYYY/MM/DD`` dates; naive values
    are taken as UTC. A blank string means "now".

    Raises:
        ValueError: if *ts* is not a recognisable timestamp.
    """
    if isinstance(ts, bool) or not isinstance(ts, (str, int, float)):
        raise ValueError(f"Not a timestamp: {ts!r}")
    if not isinstance(ts, str):
        return _from_millis(ts)

    text = ts.strip()
    if not text:
        return now_utc()

    try:
        millis = float(text)
    except ValueError:
        pass
    else:
        return _from_millis(millis)

    text = _SLASH_DATE.sub(r"\1-\2-\3", text)
    if text[-1] in "Zz":
        text = text[:-1] + "+00:00"

    dt = datetime.fromisoformat(text.replace(" ", "T", 1))
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def epoch_to_iso(seconds: int) -> str:
    """Convert epoch seconds to an ISO string (``YYYY-MM-DDTHH:MM:SS+00:00``)."""
    return datetime.fromtimestamp(seconds, tz=timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Bucketing
# ---------------------------------------------------------------------------


def period_to_seconds(period: str) -> int:
    """Convert a period string (``SECOND``, ``5MINUTE``, ``HOUR``) to seconds."""
    p = period.strip().upper()

    if p == "SECOND":
        return 1
    if p == "HOUR":
        return 60 * 60

    for suffix, unit in (("SECOND", 1), ("MINUTE", 60)):
        n = p.removesuffix(suffix)
        if n != p and n.isdigit() and int(n) > 0:
            return int(n) * unit

    raise ValueError(f"Unsupported period: {period!r}")


def bucket_start(dt: datetime, period_s: int = 1) -> int:
    """Floor *dt* to the start of its bucket, as epoch seconds.

    Buckets are aligned to the epoch grid, so for one-second buckets this is
    plain truncation to whole seconds.
    """
    if period_s <= 0:
        raise ValueError(f"period_s must be positive, got {period_s}")
    seconds = math.floor(dt.timestamp())
    return seconds - (seconds % period_s)
