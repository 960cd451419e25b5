"""Interactive terminal bridge.

Pairs each browser WebSocket with one WebSocket to the pod's exec
subresource and relays bytes both ways, translating the channel framing.
Nothing propagates out of a session: every failure ends as a terminal
message to the browser followed by teardown of both sockets.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

import structlog
from starlette.websockets import WebSocket, WebSocketDisconnect, WebSocketState

from ...config.terminal import TerminalBridgeConfig
from ...models.errors import TokenAuthRequiredError
from ..kubernetes.kubeconfig import ClusterCredentials
from .framing import ERROR_CHANNEL, OutputRenderer, build_exec_url, frame_stdin, green, is_resize_message, parse_frame, red
from .upstream import UpstreamEvent, UpstreamEventType, UpstreamSocket

logger = structlog.get_logger(__name__)


class Upstream(Protocol):
    @property
    def closed(self) -> bool: ...

    async def send(self, data: bytes) -> None: ...

    async def receive(self) -> UpstreamEvent: ...

    async def close(self) -> None: ...


CredentialResolver = Callable[[], ClusterCredentials]
UpstreamConnector = Callable[[str, ClusterCredentials], Awaitable[Upstream]]


class SessionState(str, Enum):
    RESOLVING = "resolving"
    CONNECTING = "connecting"
    BRIDGED = "bridged"
    ERROR = "error"
    CLOSED = "closed"


@dataclass(frozen=True)
class ExecTarget:
    pod: str
    namespace: str
    container: str | None = None


@dataclass
class TerminalSession:
    """State of one browser connection and its upstream peer."""

    client: WebSocket
    target: ExecTarget
    upstream: Upstream | None = None
    state: SessionState = SessionState.RESOLVING
    renderer: OutputRenderer = field(default_factory=OutputRenderer)


def client_payload(message: dict) -> bytes | None:
    """Normalise an ASGI receive message to bytes."""
    data = message.get("bytes")
    if data is not None:
        return data
    text = message.get("text")
    if text is not None:
        return text.encode("utf-8")
    return None


class TerminalBridge:
    """Relays terminal sessions between browsers and the cluster."""

    def __init__(
        self,
        resolve_credentials: CredentialResolver,
        config: TerminalBridgeConfig | None = None,
        connect_upstream: UpstreamConnector | None = None,
    ):
        self._resolve_credentials = resolve_credentials
        self._config = config or TerminalBridgeConfig()
        self._connect_upstream = connect_upstream or self._default_connect

    async def _default_connect(self, url: str, credentials: ClusterCredentials) -> Upstream:
        return await UpstreamSocket.connect(
            url,
            credentials,
            subprotocol=self._config.subprotocol,
            insecure=self._config.tls_insecure,
        )

    async def serve(self, websocket: WebSocket, target: ExecTarget) -> None:
        """Run one session until either side closes."""
        await websocket.accept()
        session = TerminalSession(client=websocket, target=target)
        log = logger.bind(pod=target.pod, namespace=target.namespace, container=target.container)
        log.info("Client WebSocket opened")

        try:
            await self._open_upstream(session, log)
        except Exception as e:
            session.state = SessionState.ERROR
            message = str(e) or e.__class__.__name__
            log.error("Failed to connect to Kubernetes", error=message)
            await self._send(session, red(f"Failed to connect: {message}"))
            await self._close_client(session)
            session.state = SessionState.CLOSED
            return

        try:
            await self._relay(session, log)
        finally:
            await self._teardown(session, log)

    async def _open_upstream(self, session: TerminalSession, log) -> None:
        credentials = await asyncio.to_thread(self._resolve_credentials)
        if not credentials.bearer_token:
            raise TokenAuthRequiredError()

        target = session.target
        url = build_exec_url(
            credentials.server_url,
            target.namespace,
            target.pod,
            self._config.shell,
            target.container,
        )

        session.state = SessionState.CONNECTING
        log.info("Connecting to Kubernetes API", url=url)
        session.upstream = await self._connect_upstream(url, credentials)
        session.state = SessionState.BRIDGED
        log.info("Connected to Kubernetes API")

    async def _relay(self, session: TerminalSession, log) -> None:
        tasks = {
            asyncio.create_task(self._pump_client(session, log)),
            asyncio.create_task(self._pump_upstream(session, log)),
        }
        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        for task in done:
            if not task.cancelled() and task.exception() is not None:
                log.error("Terminal relay failed", error=str(task.exception()))

    async def _pump_client(self, session: TerminalSession, log) -> None:
        """Browser -> cluster: frame input on the stdin channel."""
        while True:
            try:
                message = await session.client.receive()
            except WebSocketDisconnect:
                message = {"type": "websocket.disconnect"}

            if message["type"] == "websocket.disconnect":
                log.info("Client WebSocket connection closed")
                return

            data = client_payload(message)
            if data is None:
                continue
            # Resize is accepted but not forwarded
            if is_resize_message(data):
                continue

            upstream = session.upstream
            if upstream is None or upstream.closed:
                continue
            await upstream.send(frame_stdin(data))

    async def _pump_upstream(self, session: TerminalSession, log) -> None:
        """Cluster -> browser: strip channel bytes and render output."""
        upstream = session.upstream
        while True:
            event = await upstream.receive()

            if event.type is UpstreamEventType.DATA:
                frame = parse_frame(event.data)
                if frame is None:
                    continue
                if frame.channel == ERROR_CHANNEL:
                    log.error("Kubernetes exec error channel", payload=frame.payload.decode("utf-8", errors="replace"))
                text = session.renderer.render(frame)
                if text:
                    await self._send(session, text)

            elif event.type is UpstreamEventType.ERROR:
                log.error("Kubernetes WebSocket error", error=event.error)
                await self._send(session, red(f"Kubernetes connection error: {event.error}"))

            else:
                log.info("Kubernetes WebSocket closed", code=event.close_code)
                await self._send(session, green("Session closed"))
                return

    @staticmethod
    def _client_connected(session: TerminalSession) -> bool:
        client = session.client
        return (
            client.application_state == WebSocketState.CONNECTED
            and client.client_state == WebSocketState.CONNECTED
        )

    async def _send(self, session: TerminalSession, text: str) -> bool:
        if not self._client_connected(session):
            return False
        try:
            await session.client.send_text(text)
        except WebSocketDisconnect:
            logger.debug("Client went away while sending", pod=session.target.pod)
            return False
        return True

    async def _close_client(self, session: TerminalSession) -> None:
        if self._client_connected(session):
            await session.client.close()

    async def _teardown(self, session: TerminalSession, log) -> None:
        upstream = session.upstream
        if upstream is not None and not upstream.closed:
            await upstream.close()
        await self._close_client(session)
        session.state = SessionState.CLOSED
        log.info("Terminal session closed")
