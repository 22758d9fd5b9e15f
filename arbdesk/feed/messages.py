"""Decoding and classification of feed messages.

The feed speaks two shapes over one connection:

* a JSON array of ticks (bulk history, oldest first), and
* a JSON object ``{"prices": [...], "opportunity": {...}}`` (live delta).

Both are decoded here into a tagged union so the rest of the package never
inspects raw JSON.
"""

import json
from dataclasses import dataclass
from typing import Any, Mapping, Union

from arbdesk.arbitrage import ArbitrageOpportunity
from arbdesk.errors import ClassificationError, DecodeError
from arbdesk.marketdata.pair import normalize_pair
from arbdesk.marketdata.tick import PriceTick
from arbdesk.time_utils import parse_timestamp


__all__ = [
    "BulkSnapshot",
    "FeedMessage",
    "LiveDelta",
    "classify",
    "decode_message",
    "parse_history",
    "parse_tick",
]


@dataclass(frozen=True)
class BulkSnapshot:
    """Recent history for one or more exchanges, oldest first."""

    ticks: tuple[PriceTick, ...]


@dataclass(frozen=True)
class LiveDelta:
    """Per-exchange price updates plus the feed's current opportunity."""

    ticks: tuple[PriceTick, ...]
    opportunity: ArbitrageOpportunity


FeedMessage = Union[BulkSnapshot, LiveDelta]


def decode_message(text: str | bytes) -> Any:
    """Decode one inbound frame to JSON.

    Raises:
        DecodeError: if the frame is not valid JSON text.
    """
    try:
        return json.loads(text)
    except (TypeError, ValueError) as exc:
        raise DecodeError(f"Malformed feed message: {exc}") from exc


def classify(payload: Any) -> FeedMessage:
    """Classify a decoded payload as bulk history or a live delta.

    A payload is accepted or rejected as a whole: one malformed tick rejects
    the entire message.

    Raises:
        ClassificationError: for any other shape.
    """
    if isinstance(payload, list):
        return BulkSnapshot(ticks=_parse_ticks(payload, where="snapshot"))

    if isinstance(payload, Mapping):
        prices = payload.get("prices")
        opportunity = payload.get("opportunity")
        if isinstance(prices, list) and isinstance(opportunity, Mapping):
            return LiveDelta(
                ticks=_parse_ticks(prices, where="prices"),
                opportunity=ArbitrageOpportunity.from_feed(opportunity),
            )
        raise ClassificationError(
            "Object message must carry a 'prices' array and an 'opportunity' object"
        )

    raise ClassificationError(f"Unrecognised message shape: {type(payload).__name__}")


def parse_tick(record: Any) -> PriceTick:
    """Parse one ``{source, pair, price, timestamp?}`` record.

    Raises:
        ClassificationError: if the record is malformed.
    """
    if not isinstance(record, Mapping):
        raise ClassificationError(f"Tick must be an object, got {type(record).__name__}")

    source = record.get("source")
    pair = record.get("pair")
    if not isinstance(source, str) or not source:
        raise ClassificationError(f"Tick source must be a non-empty string, got {source!r}")
    if not isinstance(pair, str) or not pair.strip():
        raise ClassificationError(f"Tick pair must be a non-empty string, got {pair!r}")

    try:
        return PriceTick(
            source=source,
            pair=normalize_pair(pair),
            price=record.get("price"),
            observed_at=_parse_optional_timestamp(record.get("timestamp")),
        )
    except (ValueError, OverflowError, OSError) as exc:
        raise ClassificationError(str(exc)) from exc


def parse_history(payload: Any, *, source: str, pair: str) -> list[PriceTick]:
    """Parse a historical-endpoint response into ticks for *source*/*pair*.

    The endpoint returns ``[{timestamp, price}]`` oldest first; source and pair
    come from the request.

    Raises:
        ClassificationError: if the response is not a list of such records.
    """
    if not isinstance(payload, list):
        raise ClassificationError(f"History response must be an array, got {type(payload).__name__}")

    ticks: list[PriceTick] = []
    for i, point in enumerate(payload):
        if not isinstance(point, Mapping):
            raise ClassificationError(f"History point {i} must be an object")
        if point.get("timestamp") in (None, ""):
            raise ClassificationError(f"History point {i} has no timestamp")
        try:
            ticks.append(
                PriceTick(
                    source=source,
                    pair=pair,
                    price=point.get("price"),
                    observed_at=_parse_optional_timestamp(point["timestamp"]),
                )
            )
        except (ValueError, OverflowError, OSError) as exc:
            raise ClassificationError(f"History point {i}: {exc}") from exc
    return ticks


def _parse_ticks(records: list[Any], *, where: str) -> tuple[PriceTick, ...]:
    ticks = []
    for i, record in enumerate(records):
        try:
            ticks.append(parse_tick(record))
        except ClassificationError as exc:
            raise ClassificationError(f"{where}[{i}]: {exc}") from exc
    return tuple(ticks)


def _parse_optional_timestamp(value: Any):
    if value is None or value == "":
        return None
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise ValueError(f"Unsupported timestamp: {value!r}")
    return parse_timestamp(value)
