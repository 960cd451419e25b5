"""Unit tests for the upstream exec WebSocket."""

from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from src.services.kubernetes.kubeconfig import ClusterCredentials, CredentialSource
from src.services.terminal.upstream import (
    UpstreamEvent,
    UpstreamEventType,
    UpstreamSocket,
    build_ssl_context,
    normalize_message,
)

CREDENTIALS = ClusterCredentials(
    server_url="https://10.0.0.1:6443",
    source=CredentialSource.KUBECONFIG,
    bearer_token="secret-token",
)


def message(msg_type, data=None):
    return aiohttp.WSMessage(msg_type, data, None)


class TestNormalizeMessage:
    """Tests for mapping transport messages to events."""

    def test_binary(self):
        event = normalize_message(message(aiohttp.WSMsgType.BINARY, b"\x01hi"))
        assert event == UpstreamEvent(UpstreamEventType.DATA, data=b"\x01hi")

    def test_text_is_encoded(self):
        event = normalize_message(message(aiohttp.WSMsgType.TEXT, "\x01hé"))
        assert event.data == "\x01hé".encode()

    def test_close(self):
        event = normalize_message(message(aiohttp.WSMsgType.CLOSE, 1000))
        assert event.type is UpstreamEventType.CLOSED
        assert event.close_code == 1000

    def test_closed(self):
        event = normalize_message(message(aiohttp.WSMsgType.CLOSED))
        assert event.type is UpstreamEventType.CLOSED
        assert event.close_code is None

    def test_error(self):
        event = normalize_message(message(aiohttp.WSMsgType.ERROR, ConnectionResetError("reset by peer")))
        assert event.type is UpstreamEventType.ERROR
        assert event.error == "reset by peer"

    def test_control_frames_are_skipped(self):
        assert normalize_message(message(aiohttp.WSMsgType.PING, b"")) is None


class TestBuildSslContext:
    def test_system_trust_store_by_default(self):
        assert build_ssl_context(CREDENTIALS) is True

    def test_insecure_flag(self):
        assert build_ssl_context(CREDENTIALS, insecure=True) is False

    def test_kubeconfig_skip_verify(self):
        credentials = ClusterCredentials(
            server_url="https://k8s",
            source=CredentialSource.KUBECONFIG,
            bearer_token="t",
            insecure_skip_tls_verify=True,
        )
        assert build_ssl_context(credentials) is False


class TestUpstreamSocket:
    @pytest.mark.asyncio
    async def test_connect_sends_token_and_subprotocol(self):
        session = MagicMock()
        ws = MagicMock()
        ws.protocol = "v4.channel.k8s.io"
        session.ws_connect = AsyncMock(return_value=ws)

        with patch("src.services.terminal.upstream.aiohttp.ClientSession", return_value=session):
            socket = await UpstreamSocket.connect("wss://k8s/exec", CREDENTIALS)

        assert isinstance(socket, UpstreamSocket)
        args, kwargs = session.ws_connect.call_args
        assert args == ("wss://k8s/exec",)
        assert kwargs["headers"] == {"Authorization": "Bearer secret-token"}
        assert kwargs["protocols"] == ("v4.channel.k8s.io",)
        assert kwargs["ssl"] is True

    @pytest.mark.asyncio
    async def test_failed_handshake_closes_session(self):
        session = MagicMock()
        session.close = AsyncMock()
        session.ws_connect = AsyncMock(side_effect=aiohttp.WSServerHandshakeError(MagicMock(), (), status=403))

        with patch("src.services.terminal.upstream.aiohttp.ClientSession", return_value=session):
            with pytest.raises(aiohttp.WSServerHandshakeError):
                await UpstreamSocket.connect("wss://k8s/exec", CREDENTIALS)

        session.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_receive_skips_control_frames(self):
        ws = MagicMock()
        ws.receive = AsyncMock(
            side_effect=[message(aiohttp.WSMsgType.PONG, b""), message(aiohttp.WSMsgType.BINARY, b"\x01ok")]
        )
        socket = UpstreamSocket(MagicMock(), ws)

        event = await socket.receive()

        assert event.data == b"\x01ok"

    @pytest.mark.asyncio
    async def test_close_closes_socket_and_session(self):
        session = MagicMock()
        session.close = AsyncMock()
        ws = MagicMock()
        ws.closed = False
        ws.close = AsyncMock()
        socket = UpstreamSocket(session, ws)

        await socket.close()

        ws.close.assert_awaited_once()
        session.close.assert_awaited_once()
