"""Service interfaces for the cluster integration."""

from __future__ import annotations

# Standard library imports
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING

# Local application imports
from ..config.kubernetes import ClusterConfig

if TYPE_CHECKING:
    from kubernetes.client import V1Pod, V1Service

    from .kubernetes.models import (
        ConnectionTestResult,
        ExecChunk,
        ExecExit,
        ExecResult,
        PodSpec,
        PodStatus,
        ServiceSpec,
        ServiceStatus,
    )


class ResourceManagerInterface(ABC):
    """Interface for pod and service management against one cluster."""

    @abstractmethod
    def is_enabled(self) -> bool:
        """Whether the cluster integration is usable."""
        pass

    @abstractmethod
    def get_config(self) -> ClusterConfig:
        """Current cluster configuration."""
        pass

    @abstractmethod
    def update_config(self, cluster_config: ClusterConfig) -> None:
        """Replace the configuration and rebuild the client."""
        pass

    @abstractmethod
    async def test_connection(self, namespace: str | None = None) -> ConnectionTestResult:
        """Check cluster connectivity without raising."""
        pass

    @abstractmethod
    async def create_pod(self, spec: PodSpec) -> str:
        """Create a managed pod. Returns the server-assigned name."""
        pass

    @abstractmethod
    async def get_pod(self, name: str, namespace: str) -> V1Pod | None:
        """Read a pod; None if absent."""
        pass

    @abstractmethod
    async def list_pods(self, namespace: str | None = None, label_selector: str | None = None) -> list[PodStatus]:
        """List pods; empty on transport failure."""
        pass

    @abstractmethod
    async def delete_pod(self, name: str, namespace: str) -> bool:
        """Delete a pod. Returns False instead of raising."""
        pass

    @abstractmethod
    async def get_pod_logs(self, name: str, namespace: str, tail_lines: int = 100) -> str:
        """Tail a pod's logs."""
        pass

    @abstractmethod
    def stream_exec(
        self, name: str, namespace: str, command: list[str], container: str | None = None
    ) -> AsyncIterator[ExecChunk | ExecExit]:
        """Run a command and stream its output."""
        pass

    @abstractmethod
    async def exec_in_pod(
        self, name: str, namespace: str, command: list[str], container: str | None = None
    ) -> ExecResult:
        """Run a command and collect its output."""
        pass

    @abstractmethod
    async def cleanup_old_pods(self, namespace: str, max_age_ms: int | None = None) -> int:
        """Delete old succeeded pods. Returns count deleted."""
        pass

    @abstractmethod
    async def create_service(self, spec: ServiceSpec) -> str:
        """Create a managed service. Returns the server-assigned name."""
        pass

    @abstractmethod
    async def get_service(self, name: str, namespace: str) -> V1Service | None:
        """Read a service; None if absent."""
        pass

    @abstractmethod
    async def list_services(
        self, namespace: str | None = None, label_selector: str | None = None
    ) -> list[ServiceStatus]:
        """List services; empty on transport failure."""
        pass

    @abstractmethod
    async def delete_service(self, name: str, namespace: str) -> bool:
        """Delete a service. Returns False instead of raising."""
        pass
