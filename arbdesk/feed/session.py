"""
Stream session: one live subscription to the price feed.

The session owns the transport connection and the per-subscription state.
Every ``open()``/``close()`` bumps a generation counter before doing anything
else; readers and history fetches remember the generation they started
under and drop their results once it has moved on. That is what keeps a slow
connection or a late history response from writing into the state of a pair
that was requested afterwards.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

from arbdesk.config import FeedConfig
from arbdesk.errors import ClassificationError, DecodeError, FeedError, StaleResultError, TransportError
from arbdesk.events import EventDispatcher
from arbdesk.feed.events import (
    DeltaAppliedEvent,
    SessionStatus,
    SessionStatusChangedEvent,
    SnapshotLoadedEvent,
)
from arbdesk.feed.history import HistoryClient
from arbdesk.feed.messages import LiveDelta, classify, decode_message
from arbdesk.feed.transport import AiohttpTransport, Connection, Transport
from arbdesk.marketdata.candle import CandleUpdate
from arbdesk.marketdata.events import CandleClosedEvent, CandleUpdatedEvent
from arbdesk.marketdata.pair import Pair
from arbdesk.state import SubscriptionState
from arbdesk.time_utils import now_utc


log = logging.getLogger(__name__)


__all__ = ["StreamSession"]


class StreamSession:
    """
    Manage exactly one feed subscription at a time.

    Status moves ``DISCONNECTED -> CONNECTING -> SUBSCRIBED`` and ends in
    ``DISCONNECTED`` (clean close) or ``ERROR`` (transport failure). The
    session never reconnects on its own; call ``open()`` again.

    Rendering code subscribes to events on ``dispatcher``:
    ``SessionStatusChangedEvent``, ``SnapshotLoadedEvent``,
    ``DeltaAppliedEvent``, ``CandleUpdatedEvent`` and ``CandleClosedEvent``.

    Example:
        async with StreamSession(FeedConfig()) as session:
            session.dispatcher.subscribe(DeltaAppliedEvent, render)
            await session.open("SOL/USDT")
            await session.wait_closed()
    """

    def __init__(
        self,
        config: Optional[FeedConfig] = None,
        *,
        transport: Optional[Transport] = None,
        history: Optional[HistoryClient] = None,
        dispatcher: Optional[EventDispatcher] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the session.

        Args:
            config: Feed configuration (defaults to ``FeedConfig()``)
            transport: Connection factory (defaults to aiohttp WebSocket)
            history: Historical endpoint client; built from
                ``config.history_url`` when omitted
            dispatcher: Event dispatcher for rendering callbacks
            clock: Receipt-time clock, UTC-aware
        """
        self.config = config or FeedConfig()
        self.dispatcher = dispatcher or EventDispatcher()
        self._transport = transport or AiohttpTransport()
        if history is None and self.config.history_url:
            history = HistoryClient(self.config.history_url, timeout=self.config.history_timeout)
        self._history = history
        self._clock = clock or now_utc

        self._lock = asyncio.Lock()
        self._generation = 0
        self._state_generation = 0
        self._status = SessionStatus.DISCONNECTED
        self._pair: Optional[Pair] = None
        self._state: Optional[SubscriptionState] = None
        self._connection: Optional[Connection] = None
        self._reader: Optional[asyncio.Task] = None
        self._tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Public state
    # ------------------------------------------------------------------

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def pair(self) -> Optional[str]:
        return str(self._pair) if self._pair is not None else None

    @property
    def state(self) -> Optional[SubscriptionState]:
        """State of the current (or most recently ended) subscription."""
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self, pair: str | Pair) -> None:
        """
        Subscribe to *pair*, replacing any existing subscription.

        The previous connection is released before a new one is made, and
        all state from the previous pair is discarded. Connection failures
        are reported through the status (``ERROR``), not raised.

        Raises:
            ValueError: if *pair* is not of the form ``BASE/QUOTE``
        """
        target = Pair.parse(pair)
        self._generation += 1
        generation = self._generation

        async with self._lock:
            if generation != self._generation:
                log.debug("Subscription to %s superseded before it started", target)
                return

            await self._teardown()

            self._pair = target
            self._state = SubscriptionState(
                str(target),
                period=self.config.candle_period,
                max_candles=self.config.max_candles,
            )
            self._state_generation = generation
            await self._set_status(SessionStatus.CONNECTING)

            try:
                connection = await self._transport.connect(self.config.feed_url)
            except TransportError as exc:
                log.error("Connection to %s failed: %s", self.config.feed_url, exc)
                if generation == self._generation:
                    await self._set_status(SessionStatus.ERROR)
                return

            if generation != self._generation:
                await self._release(connection)
                return

            try:
                await connection.send_json(target.subscription_intent())
            except TransportError as exc:
                log.error("Subscription request for %s failed: %s", target, exc)
                await self._release(connection)
                if generation == self._generation:
                    await self._set_status(SessionStatus.ERROR)
                return

            self._connection = connection
            await self._set_status(SessionStatus.SUBSCRIBED)
            if generation != self._generation:
                return

            self._reader = asyncio.create_task(
                self._read_loop(connection, generation),
                name=f"arbdesk-feed-{target}",
            )
            log.info("Subscribed to %s on %s", target, self.config.feed_url)

            for source in self.config.history_sources:
                self._spawn(self.load_history(source), what=f"history for {source}")

    async def close(self) -> None:
        """
        End the current subscription.

        After this returns the connection is released and no further
        messages or history results are processed. Safe to call repeatedly
        and before any ``open()``.
        """
        self._generation += 1
        async with self._lock:
            await self._teardown()

    async def wait_closed(self) -> None:
        """Wait until the feed connection ends (peer close, error or close())."""
        reader = self._reader
        if reader is not None:
            await asyncio.gather(reader, return_exceptions=True)

    async def __aenter__(self) -> "StreamSession":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    async def load_history(self, source: str) -> bool:
        """
        Fetch recent history for *source* under the active pair and apply it
        like a bulk snapshot.

        The result is discarded if another ``open()``/``close()`` happened
        while the request was in flight.

        Returns:
            True if the history was applied
        """
        if self._history is None:
            log.debug("No history endpoint configured; skipping %s", source)
            return False

        state = self._state
        if state is None:
            log.debug("No active subscription; skipping history for %s", source)
            return False

        generation = self._generation
        pair = state.pair

        try:
            self._ensure_current(self._state_generation, what=f"history for {source} {pair}")
        except StaleResultError as exc:
            log.debug("%s", exc)
            return False

        try:
            ticks = await self._history.fetch(pair, source)
        except (TransportError, ClassificationError) as exc:
            log.warning("History for %s %s unavailable: %s", source, pair, exc)
            return False

        try:
            self._ensure_current(generation, what=f"history for {source} {pair}")
            if state is not self._state:
                raise StaleResultError(
                    requested=generation, current=self._state_generation, what=f"history for {source} {pair}"
                )
        except StaleResultError as exc:
            log.debug("%s", exc)
            return False

        updates = state.apply_bulk(ticks, self._clock())
        await self._publish_candles(updates, generation)
        if generation == self._generation:
            await self.dispatcher.publish(
                SnapshotLoadedEvent(
                    pair=pair,
                    origin="history",
                    tick_count=len(ticks),
                    prices=state.snapshot.copy(),
                    opportunity=state.opportunity,
                )
            )
        log.info("Loaded %d historical prices for %s %s", len(ticks), source, pair)
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _ensure_current(self, generation: int, *, what: str) -> None:
        if generation != self._generation:
            raise StaleResultError(requested=generation, current=self._generation, what=what)

    async def _read_loop(self, connection: Connection, generation: int) -> None:
        status = SessionStatus.DISCONNECTED
        try:
            while generation == self._generation:
                try:
                    text = await connection.receive()
                except TransportError as exc:
                    log.error("Feed connection lost: %s", exc)
                    status = SessionStatus.ERROR
                    break

                if text is None:
                    log.info("Feed closed the connection")
                    break
                if generation != self._generation:
                    break

                await self._handle_text(text, generation)
        finally:
            await self._release(connection)

        if generation == self._generation:
            # Invalidate in-flight history for this connection; the state
            # stays readable but is no longer updated.
            self._generation += 1
            self._connection = None
            self._reader = None
            await self._set_status(status)

    async def _handle_text(self, text: str, generation: int) -> None:
        try:
            message = classify(decode_message(text))
        except DecodeError as exc:
            log.warning("Dropping malformed feed message: %s", exc)
            return
        except ClassificationError as exc:
            log.warning("Dropping unrecognised feed message: %s", exc)
            return

        state = self._state
        if state is None or generation != self._generation:
            return

        received_at = self._clock()

        if isinstance(message, LiveDelta):
            updates = state.apply_delta(message, received_at)
            await self._publish_candles(updates, generation)
            if generation == self._generation:
                await self.dispatcher.publish(
                    DeltaAppliedEvent(
                        pair=state.pair,
                        prices=state.snapshot.copy(),
                        opportunity=message.opportunity,
                        evaluated=state.evaluated_opportunity,
                    )
                )
        else:
            updates = state.apply_bulk(message.ticks, received_at)
            await self._publish_candles(updates, generation)
            if generation == self._generation:
                await self.dispatcher.publish(
                    SnapshotLoadedEvent(
                        pair=state.pair,
                        origin="feed",
                        tick_count=len(message.ticks),
                        prices=state.snapshot.copy(),
                        opportunity=state.opportunity,
                    )
                )

    async def _publish_candles(self, updates: list[CandleUpdate], generation: int) -> None:
        want_closed = self.dispatcher.has_subscribers(CandleClosedEvent)
        want_updated = self.dispatcher.has_subscribers(CandleUpdatedEvent)
        if not (want_closed or want_updated):
            return

        for update in updates:
            if generation != self._generation:
                return
            if want_closed and update.closed is not None:
                await self.dispatcher.publish(
                    CandleClosedEvent(source=update.source, pair=update.pair, candle=update.closed)
                )
            if want_updated:
                await self.dispatcher.publish(
                    CandleUpdatedEvent(
                        source=update.source,
                        pair=update.pair,
                        candle=update.candle,
                        trend=update.trend,
                    )
                )

    async def _teardown(self) -> None:
        current = asyncio.current_task()

        pending = [t for t in (self._reader, *self._tasks) if t is not None and t is not current]
        self._reader = None
        for task in pending:
            task.cancel()
        # Drain; cancellation results are expected here.
        await asyncio.gather(*pending, return_exceptions=True)

        connection, self._connection = self._connection, None
        if connection is not None:
            await self._release(connection)

        await self._set_status(SessionStatus.DISCONNECTED)
        self._state = None
        self._pair = None

    async def _release(self, connection: Connection) -> None:
        try:
            await connection.close()
        except Exception:
            log.warning("Error while closing feed connection", exc_info=True)

    async def _set_status(self, status: SessionStatus) -> None:
        previous = self._status
        if previous is status:
            return
        self._status = status
        log.info("Feed session %s: %s -> %s", self.pair or "-", previous.value, status.value)
        await self.dispatcher.publish(
            SessionStatusChangedEvent(pair=self.pair, previous=previous, status=status)
        )

    def _spawn(self, coro: Awaitable[Any], *, what: str) -> None:
        task = asyncio.create_task(self._guarded(coro, what=what))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _guarded(self, coro: Awaitable[Any], *, what: str) -> None:
        try:
            await coro
        except asyncio.CancelledError:
            raise
        except FeedError as exc:
            log.warning("%s failed: %s", what, exc)
        except Exception:
            log.exception("%s failed unexpectedly", what)
