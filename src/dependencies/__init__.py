"""Dependencies package for the cluster integration API.

The composition root stores the shared service objects on ``app.state``;
these helpers hand them to route handlers.
"""

from typing import Annotated

from fastapi import Depends, Request, WebSocket

from ..config import Settings
from ..services.kubernetes import KubernetesManager
from ..services.terminal import TerminalBridge


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_kubernetes_manager(request: Request) -> KubernetesManager:
    return request.app.state.kubernetes_manager


def get_terminal_bridge(websocket: WebSocket) -> TerminalBridge:
    return websocket.app.state.terminal_bridge


SettingsDep = Annotated[Settings, Depends(get_settings)]
KubernetesManagerDep = Annotated[KubernetesManager, Depends(get_kubernetes_manager)]
TerminalBridgeDep = Annotated[TerminalBridge, Depends(get_terminal_bridge)]

__all__ = [
    "get_settings",
    "get_kubernetes_manager",
    "get_terminal_bridge",
    "SettingsDep",
    "KubernetesManagerDep",
    "TerminalBridgeDep",
]
