import asyncio
import json
import os
import sys
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from arbdesk.config import FeedConfig
from arbdesk.errors import TransportError
from arbdesk.events import EventDispatcher
from arbdesk.feed.session import StreamSession
from arbdesk.feed.transport import Connection, Transport

# 2026-01-01 00:00:00 UTC (epoch 1767225600)
BASE_TS = datetime(2026, 1, 1, tzinfo=timezone.utc)


class FakeConnection(Connection):
    """In-memory feed connection; tests push frames into it."""

    def __init__(self, transport: "FakeTransport"):
        self._transport = transport
        self._inbox: asyncio.Queue = asyncio.Queue()
        self.sent: list[dict] = []
        self.closed = False
        self.fail_send: Exception | None = None

    def push(self, message) -> None:
        """Queue a frame; non-strings are JSON-encoded."""
        self._inbox.put_nowait(message if isinstance(message, str) else json.dumps(message))

    def push_close(self) -> None:
        self._inbox.put_nowait(None)

    def push_error(self, exc: Exception | None = None) -> None:
        self._inbox.put_nowait(exc or TransportError("connection reset"))

    async def send_json(self, payload: dict) -> None:
        if self.fail_send is not None:
            raise self.fail_send
        self.sent.append(payload)

    async def receive(self):
        item = await self._inbox.get()
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._transport.live -= 1


class FakeTransport(Transport):
    """Records connections and tracks how many are live at once."""

    def __init__(self):
        self.urls: list[str] = []
        self.connections: list[FakeConnection] = []
        self.gates: list[asyncio.Event | None] = []
        self.fail: Exception | None = None
        self.fail_send: Exception | None = None
        self.live = 0
        self.max_live = 0

    async def connect(self, url: str) -> Connection:
        self.urls.append(url)
        gate = self.gates.pop(0) if self.gates else None
        if gate is not None:
            await gate.wait()
        if self.fail is not None:
            raise self.fail
        conn = FakeConnection(self)
        conn.fail_send = self.fail_send
        self.connections.append(conn)
        self.live += 1
        self.max_live = max(self.max_live, self.live)
        return conn

    @property
    def last(self) -> FakeConnection:
        return self.connections[-1]


class FakeHistoryClient:
    """Stands in for HistoryClient; responses and gates are keyed by source."""

    def __init__(self):
        self.requests: list[tuple[str, str]] = []
        self.responses: dict = {}
        self.gates: dict[str, asyncio.Event] = {}

    async def fetch(self, pair: str, source: str):
        self.requests.append((pair, source))
        gate = self.gates.get(source)
        if gate is not None:
            await gate.wait()
        response = self.responses.get(source, [])
        if isinstance(response, Exception):
            raise response
        return list(response)


class FakeClock:
    """Deterministic receipt-time clock."""

    def __init__(self, start: datetime = BASE_TS):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def history():
    return FakeHistoryClient()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def dispatcher():
    return EventDispatcher()


@pytest.fixture
def config():
    return FeedConfig(feed_url="ws://feed.test/ws/arb")


@pytest.fixture
def session(config, transport, history, dispatcher, clock):
    return StreamSession(
        config,
        transport=transport,
        history=history,
        dispatcher=dispatcher,
        clock=clock,
    )


@pytest.fixture
def eventually():
    """Poll the event loop until *predicate* holds (or fail after a timeout)."""

    async def _eventually(predicate, timeout: float = 1.0) -> None:
        async def _poll():
            while not predicate():
                await asyncio.sleep(0)

        await asyncio.wait_for(_poll(), timeout)

    return _eventually


class AsyncContextManagerMock:
    """Helper class to mock async context managers."""
    def __init__(self, return_value=None):
        self.return_value = return_value or MagicMock()

    async def __aenter__(self):
        return self.return_value

    async def __aexit__(self, *args):
        return None


@pytest.fixture
def mock_http_response():
    """Create a mock HTTP response from the history endpoint."""
    mock_response = MagicMock()
    mock_response.status = 200
    mock_response.json = AsyncMock(return_value=[
        {"timestamp": "2026-01-01T00:00:00.000Z", "price": 140.5},
        {"timestamp": "2026-01-01T00:01:00.000Z", "price": 141.25},
    ])
    mock_response.raise_for_status = MagicMock()
    return mock_response


@pytest.fixture
def mock_aiohttp_session(mock_http_response):
    """Mock aiohttp ClientSession."""
    response_context = AsyncContextManagerMock(mock_http_response)

    mock_session = MagicMock()
    mock_session.get = MagicMock(return_value=response_context)
    mock_session.close = AsyncMock()

    mock_session.__aenter__ = AsyncMock(return_value=mock_session)
    mock_session.__aexit__ = AsyncMock(return_value=None)

    return mock_session
