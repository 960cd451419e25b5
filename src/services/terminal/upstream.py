"""Client side of the WebSocket to the cluster's exec subresource."""

import ssl
from dataclasses import dataclass
from enum import Enum

import aiohttp
import structlog

from ...config.terminal import EXEC_SUBPROTOCOL
from ..kubernetes.kubeconfig import ClusterCredentials

logger = structlog.get_logger(__name__)


class UpstreamEventType(str, Enum):
    DATA = "data"
    ERROR = "error"
    CLOSED = "closed"


@dataclass(frozen=True)
class UpstreamEvent:
    """Transport message normalised to bytes."""

    type: UpstreamEventType
    data: bytes = b""
    error: str | None = None
    close_code: int | None = None


def normalize_message(message: aiohttp.WSMessage) -> UpstreamEvent | None:
    """Map an aiohttp message to an event; None for control frames."""
    if message.type == aiohttp.WSMsgType.BINARY:
        return UpstreamEvent(UpstreamEventType.DATA, data=bytes(message.data))
    if message.type == aiohttp.WSMsgType.TEXT:
        return UpstreamEvent(UpstreamEventType.DATA, data=message.data.encode("utf-8"))
    if message.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED):
        code = message.data if isinstance(message.data, int) else None
        return UpstreamEvent(UpstreamEventType.CLOSED, close_code=code)
    if message.type == aiohttp.WSMsgType.ERROR:
        error = message.data
        return UpstreamEvent(UpstreamEventType.ERROR, error=str(error) or error.__class__.__name__)
    return None


def build_ssl_context(credentials: ClusterCredentials, insecure: bool = False) -> ssl.SSLContext | bool:
    """TLS settings for the upstream connection.

    Uses the cluster CA when present, otherwise the system trust store.
    Returns False (no verification) only when explicitly asked to.
    """
    if insecure or credentials.insecure_skip_tls_verify:
        return False
    if credentials.ca_cert:
        return ssl.create_default_context(cadata=credentials.ca_cert.decode("utf-8"))
    return True


class UpstreamSocket:
    """One authenticated WebSocket to the API server."""

    def __init__(self, session: aiohttp.ClientSession, ws: aiohttp.ClientWebSocketResponse):
        self._session = session
        self._ws = ws

    @classmethod
    async def connect(
        cls,
        url: str,
        credentials: ClusterCredentials,
        subprotocol: str = EXEC_SUBPROTOCOL,
        insecure: bool = False,
    ) -> "UpstreamSocket":
        session = aiohttp.ClientSession()
        try:
            ws = await session.ws_connect(
                url,
                headers={"Authorization": f"Bearer {credentials.bearer_token}"},
                protocols=(subprotocol,),
                ssl=build_ssl_context(credentials, insecure),
            )
        except BaseException:
            await session.close()
            raise

        logger.debug("Upstream WebSocket connected", protocol=ws.protocol)
        return cls(session, ws)

    @property
    def closed(self) -> bool:
        return self._ws.closed

    async def send(self, data: bytes) -> None:
        await self._ws.send_bytes(data)

    async def receive(self) -> UpstreamEvent:
        while True:
            event = normalize_message(await self._ws.receive())
            if event is not None:
                return event

    async def close(self) -> None:
        if not self._ws.closed:
            await self._ws.close()
        await self._session.close()
