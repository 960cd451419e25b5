"""Data models for the Kubernetes integration.

These models represent pods, services, exec output and the options used to
create resources throughout the Kubernetes layer.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum


class PodPhase(str, Enum):
    """Phase reported by the API server for a pod."""

    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value: str | None) -> "PodPhase":
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


def age_ms(since: datetime | None, now: datetime | None = None) -> int:
    """Milliseconds elapsed since ``since``.

    A missing timestamp (pod not yet scheduled) counts as age zero.
    """
    if since is None:
        return 0
    now = now or datetime.now(UTC)
    if since.tzinfo is None:
        since = since.replace(tzinfo=UTC)
    return int((now - since).total_seconds() * 1000)


@dataclass
class PodStatus:
    """Summary of a pod as shown in listings."""

    name: str
    namespace: str
    phase: PodPhase
    ready: bool
    age_ms: int
    image: str | None = None
    labels: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "namespace": self.namespace,
            "phase": self.phase.value,
            "ready": self.ready,
            "age": self.age_ms,
            "image": self.image,
            "labels": dict(self.labels),
        }


@dataclass
class ServicePortStatus:
    port: int
    target_port: int | str | None
    protocol: str = "TCP"


@dataclass
class ServiceStatus:
    """Summary of a service as shown in listings."""

    name: str
    namespace: str
    type: str
    ports: list[ServicePortStatus]
    selector: dict[str, str]
    age_ms: int
    cluster_ip: str | None = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "namespace": self.namespace,
            "type": self.type,
            "clusterIP": self.cluster_ip,
            "ports": [
                {"port": p.port, "targetPort": p.target_port, "protocol": p.protocol} for p in self.ports
            ],
            "selector": dict(self.selector),
            "age": self.age_ms,
        }


@dataclass
class VolumeMount:
    name: str
    mount_path: str


@dataclass
class HostPathVolume:
    name: str
    host_path: str


@dataclass
class PodSpec:
    """Specification for creating a managed pod.

    The pod always gets a single container named ``runner`` and
    ``restartPolicy: Never``. Caller labels are merged under the
    ownership labels, which always win.
    """

    name: str
    namespace: str
    image: str
    command: list[str] | None = None
    args: list[str] | None = None
    working_dir: str | None = None
    env: dict[str, str] = field(default_factory=dict)
    labels: dict[str, str] = field(default_factory=dict)
    volume_mounts: list[VolumeMount] = field(default_factory=list)
    volumes: list[HostPathVolume] = field(default_factory=list)


@dataclass
class ServicePort:
    port: int
    target_port: int | None = None
    protocol: str = "TCP"
    name: str | None = None

    @property
    def resolved_target_port(self) -> int:
        return self.target_port or self.port


@dataclass
class ServiceSpec:
    """Specification for creating a managed service."""

    name: str
    namespace: str
    selector: dict[str, str]
    ports: list[ServicePort]
    type: str = "ClusterIP"


class ExecStream(str, Enum):
    STDOUT = "stdout"
    STDERR = "stderr"


@dataclass(frozen=True)
class ExecChunk:
    """A piece of output from one stream of an exec invocation."""

    stream: ExecStream
    data: str


@dataclass(frozen=True)
class ExecExit:
    """Terminal item of an exec stream, taken from the status channel."""

    exit_code: int


@dataclass
class ExecResult:
    """Collected output of a one-shot exec."""

    stdout: str
    stderr: str
    exit_code: int


@dataclass
class ConnectionTestResult:
    connected: bool
    namespace: str | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        result: dict = {"connected": self.connected}
        if self.namespace is not None:
            result["namespace"] = self.namespace
        if self.error is not None:
            result["error"] = self.error
        return result
