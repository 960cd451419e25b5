"""WebSocket endpoint of the interactive terminal bridge."""

import structlog
from fastapi import WebSocket, status

from ..dependencies import TerminalBridgeDep
from ..services.terminal import ExecTarget

logger = structlog.get_logger(__name__)


async def exec_websocket(
    websocket: WebSocket,
    bridge: TerminalBridgeDep,
    pod: str | None = None,
    namespace: str | None = None,
    container: str | None = None,
) -> None:
    """Attach a browser terminal to a shell inside ``pod``.

    Connections without ``pod`` and ``namespace`` are refused before the
    upgrade completes.
    """
    if not pod or not namespace:
        logger.warning("Rejected terminal connection", pod=pod, namespace=namespace)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="pod and namespace are required")
        return

    await bridge.serve(websocket, ExecTarget(pod=pod, namespace=namespace, container=container or None))
