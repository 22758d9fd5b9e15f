"""Tests for arbdesk.feed.transport – the aiohttp WebSocket adapter."""

from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from arbdesk.errors import TransportError
from arbdesk.feed.transport import AiohttpConnection, AiohttpTransport


def _msg(type_, data=None):
    msg = MagicMock()
    msg.type = type_
    msg.data = data
    return msg


@pytest.fixture
def ws():
    ws = MagicMock()
    ws.receive = AsyncMock()
    ws.send_json = AsyncMock()
    ws.close = AsyncMock()
    ws.exception = MagicMock(return_value=None)
    return ws


@pytest.fixture
def client_session():
    session = MagicMock()
    session.close = AsyncMock()
    return session


class TestAiohttpConnection:

    @pytest.mark.asyncio
    async def test_text_frame(self, client_session, ws):
        ws.receive.return_value = _msg(aiohttp.WSMsgType.TEXT, '{"prices": []}')
        conn = AiohttpConnection(client_session, ws)
        assert await conn.receive() == '{"prices": []}'

    @pytest.mark.asyncio
    async def test_binary_frame_is_decoded(self, client_session, ws):
        ws.receive.return_value = _msg(aiohttp.WSMsgType.BINARY, b"[]")
        conn = AiohttpConnection(client_session, ws)
        assert await conn.receive() == "[]"

    @pytest.mark.asyncio
    async def test_control_frames_are_skipped(self, client_session, ws):
        ws.receive.side_effect = [
            _msg(aiohttp.WSMsgType.PING),
            _msg(aiohttp.WSMsgType.BINARY, b"\xff\xfe"),
            _msg(aiohttp.WSMsgType.TEXT, "[]"),
        ]
        conn = AiohttpConnection(client_session, ws)
        assert await conn.receive() == "[]"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "msg_type",
        [aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED],
    )
    async def test_close_frames_end_stream(self, client_session, ws, msg_type):
        ws.receive.return_value = _msg(msg_type)
        conn = AiohttpConnection(client_session, ws)
        assert await conn.receive() is None

    @pytest.mark.asyncio
    async def test_error_frame_raises(self, client_session, ws):
        ws.receive.return_value = _msg(aiohttp.WSMsgType.ERROR)
        ws.exception.return_value = ConnectionResetError("reset by peer")
        conn = AiohttpConnection(client_session, ws)

        with pytest.raises(TransportError, match="reset by peer"):
            await conn.receive()

    @pytest.mark.asyncio
    async def test_send_failure_raises(self, client_session, ws):
        ws.send_json.side_effect = ConnectionResetError("gone")
        conn = AiohttpConnection(client_session, ws)

        with pytest.raises(TransportError):
            await conn.send_json({"token_a": "SOL", "token_b": "USDT"})

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, client_session, ws):
        conn = AiohttpConnection(client_session, ws)
        await conn.close()
        await conn.close()

        ws.close.assert_awaited_once()
        client_session.close.assert_awaited_once()


class TestAiohttpTransport:

    @pytest.mark.asyncio
    async def test_connect(self, client_session, ws):
        client_session.ws_connect = AsyncMock(return_value=ws)

        with patch("arbdesk.feed.transport.aiohttp.ClientSession", return_value=client_session):
            conn = await AiohttpTransport(heartbeat=5.0).connect("ws://feed.test/ws/arb")

        client_session.ws_connect.assert_awaited_once_with("ws://feed.test/ws/arb", heartbeat=5.0)
        assert isinstance(conn, AiohttpConnection)

    @pytest.mark.asyncio
    async def test_connect_failure_closes_session(self, client_session):
        client_session.ws_connect = AsyncMock(side_effect=aiohttp.ClientConnectionError("refused"))

        with patch("arbdesk.feed.transport.aiohttp.ClientSession", return_value=client_session):
            with pytest.raises(TransportError, match="ws://feed.test/ws/arb"):
                await AiohttpTransport().connect("ws://feed.test/ws/arb")

        client_session.close.assert_awaited_once()
