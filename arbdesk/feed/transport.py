"""
Streaming transport boundary.

The session only needs three things from a connection: send a JSON object,
receive the next text frame, and close. ``AiohttpTransport`` provides these
over a WebSocket; tests substitute an in-memory implementation.
"""

import abc
import logging
from typing import Any, Optional

import aiohttp

from arbdesk.errors import TransportError


log = logging.getLogger(__name__)


__all__ = [
    "AiohttpConnection",
    "AiohttpTransport",
    "Connection",
    "Transport",
]


class Connection(abc.ABC):
    """One established duplex connection to the feed."""

    @abc.abstractmethod
    async def send_json(self, payload: dict[str, Any]) -> None:
        """Send a JSON object. Raises TransportError on failure."""
        raise NotImplementedError

    @abc.abstractmethod
    async def receive(self) -> Optional[str]:
        """
        Wait for the next text frame.

        Returns:
            The frame text, or None once the peer has closed cleanly

        Raises:
            TransportError: on a connection-level failure
        """
        raise NotImplementedError

    @abc.abstractmethod
    async def close(self) -> None:
        """Release the connection. Must be idempotent."""
        raise NotImplementedError


class Transport(abc.ABC):
    """Factory for feed connections."""

    @abc.abstractmethod
    async def connect(self, url: str) -> Connection:
        """Establish a connection. Raises TransportError on failure."""
        raise NotImplementedError


class AiohttpConnection(Connection):
    """WebSocket connection backed by an aiohttp client session."""

    def __init__(self, session: aiohttp.ClientSession, ws: aiohttp.ClientWebSocketResponse):
        self._session = session
        self._ws = ws
        self._closed = False

    async def send_json(self, payload: dict[str, Any]) -> None:
        try:
            await self._ws.send_json(payload)
        except (aiohttp.ClientError, ConnectionError, RuntimeError) as exc:
            raise TransportError(f"Failed to send to feed: {exc}") from exc

    async def receive(self) -> Optional[str]:
        while True:
            try:
                msg = await self._ws.receive()
            except (aiohttp.ClientError, ConnectionError) as exc:
                raise TransportError(f"Feed connection failed: {exc}") from exc

            if msg.type == aiohttp.WSMsgType.TEXT:
                return msg.data
            if msg.type == aiohttp.WSMsgType.BINARY:
                # The feed only sends text; tolerate UTF-8 JSON in binary frames.
                try:
                    return msg.data.decode("utf-8")
                except UnicodeDecodeError:
                    log.warning("Dropping undecodable binary frame (%d bytes)", len(msg.data))
                    continue
            if msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED):
                return None
            if msg.type == aiohttp.WSMsgType.ERROR:
                raise TransportError(f"Feed connection error: {self._ws.exception() or msg.data}")
            # PING/PONG are answered by aiohttp itself.

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._ws.close()
        finally:
            await self._session.close()


class AiohttpTransport(Transport):
    """
    Connect to the feed over a WebSocket using aiohttp.

    Args:
        heartbeat: Seconds between WebSocket pings (None disables)
    """

    def __init__(self, *, heartbeat: Optional[float] = 20.0):
        self.heartbeat = heartbeat

    async def connect(self, url: str) -> Connection:
        session = aiohttp.ClientSession()
        try:
            ws = await session.ws_connect(url, heartbeat=self.heartbeat)
        except (aiohttp.ClientError, OSError) as exc:
            await session.close()
            raise TransportError(f"Could not connect to {url}: {exc}") from exc
        except BaseException:
            await session.close()
            raise
        log.debug("Connected to %s", url)
        return AiohttpConnection(session, ws)
