"""
Headless feed runner.
"""

import asyncio
import logging
import sys
from typing import Optional

from arbdesk.config import FeedConfig
from arbdesk.feed.events import (
    DeltaAppliedEvent,
    SessionStatus,
    SessionStatusChangedEvent,
    SnapshotLoadedEvent,
)
from arbdesk.feed.session import StreamSession
from arbdesk.marketdata.events import CandleClosedEvent


log = logging.getLogger(__name__)


__all__ = [
    "build_session",
    "configure_logging",
    "run_feed",
]


LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: str = "INFO", force: bool = False) -> None:
    """
    Send log records to stdout, one timestamped line each.

    An already-configured root logger is left alone unless *force* is set,
    in which case its handlers are replaced.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR)
        force: Replace existing root handlers
    """
    root = logging.getLogger()
    if root.handlers and not force:
        return

    for existing in list(root.handlers):
        root.removeHandler(existing)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
    root.addHandler(handler)
    root.setLevel(level.upper())


def _log_candle_close(event: CandleClosedEvent) -> None:
    c = event.candle
    log.info(
        "%s %s %s O=%.4f H=%.4f L=%.4f C=%.4f (%d ticks)",
        event.source,
        event.pair,
        c.time,
        c.open,
        c.high,
        c.low,
        c.close,
        c.tick_count,
    )


def _log_delta(event: DeltaAppliedEvent) -> None:
    opp = event.opportunity
    log.info(
        "%s: buy %s @ %.4f, sell %s @ %.4f, spread %.2f%%",
        opp.pair,
        opp.best_buy_source,
        opp.best_buy_price,
        opp.best_sell_source,
        opp.best_sell_price,
        opp.spread_percent,
    )


def _log_snapshot(event: SnapshotLoadedEvent) -> None:
    log.info("Loaded %d %s prices for %s", event.tick_count, event.origin, event.pair)


def _log_status(event: SessionStatusChangedEvent) -> None:
    if event.status is SessionStatus.ERROR:
        log.warning("Feed connection for %s failed", event.pair or "-")


def build_session(config: FeedConfig) -> StreamSession:
    """Create a session with logging handlers attached to its dispatcher."""
    session = StreamSession(config)
    session.dispatcher.subscribe(CandleClosedEvent, _log_candle_close)
    session.dispatcher.subscribe(DeltaAppliedEvent, _log_delta)
    session.dispatcher.subscribe(SnapshotLoadedEvent, _log_snapshot)
    session.dispatcher.subscribe(SessionStatusChangedEvent, _log_status)
    return session


async def _async_run_feed(pair: str, config: FeedConfig) -> None:
    log.info("=" * 70)
    log.info("arbdesk feed %s", config.feed_url)
    log.info("=" * 70)

    async with build_session(config) as session:
        await session.open(pair)
        await session.wait_closed()


def run_feed(
    pair: str,
    config: Optional[FeedConfig] = None,
    log_level: Optional[str] = None,
    setup_logging: bool = True,
) -> None:
    """
    Follow one pair on the feed until the connection ends.

    This is a synchronous entry point: it manages the asyncio event loop and
    the session lifecycle, and logs candle closes and opportunities.

    Args:
        pair: Pair to subscribe to (e.g. "SOL/USDT")
        config: Feed configuration; read from the environment when None
        log_level: The logging level to configure (default "INFO")
        setup_logging: If True, configures the root logger
    """
    if setup_logging:
        configure_logging(log_level or "INFO")

    exit_code = 0

    try:
        asyncio.run(_async_run_feed(pair, config or FeedConfig.from_env()))

    except KeyboardInterrupt:
        log.info("")
        log.info("-" * 70)
        log.info("Interrupted by user - shutting down gracefully")

    except Exception as e:
        log.exception("Fatal error in feed runner: %s", e)
        exit_code = 1

    finally:
        log.info("=" * 70)
        log.info("arbdesk shut down complete")
        log.info("=" * 70)

    if exit_code:
        sys.exit(exit_code)
