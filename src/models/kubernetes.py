"""Request/response models for the Kubernetes HTTP endpoints."""

# Standard library imports
from typing import Literal

# Third-party imports
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Local application imports
from ..config.kubernetes import ClusterConfig
from ..services.kubernetes.models import HostPathVolume, PodSpec, ServicePort, ServiceSpec, VolumeMount

WORKSPACE_VOLUME_NAME = "workspace"


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys, as the web UI sends them."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ClusterConfigUpdate(CamelModel):
    """Request model for PUT /config."""

    enabled: bool
    namespace: str | None = None
    kubeconfig_path: str | None = None

    def to_config(self) -> ClusterConfig:
        return ClusterConfig(
            enabled=self.enabled,
            namespace=self.namespace or None,
            kubeconfig_path=self.kubeconfig_path or None,
        )


class TestConnectionRequest(CamelModel):
    namespace: str | None = None


class CreatePodRequest(CamelModel):
    """Request model for POST /pods.

    ``mount_path`` and ``host_path`` together add one hostPath volume
    named ``workspace``; either alone is ignored.
    """

    name: str = Field(..., min_length=1)
    namespace: str = Field(..., min_length=1)
    image: str = Field(..., min_length=1)
    command: list[str] | None = None
    args: list[str] | None = None
    working_dir: str | None = None
    env: dict[str, str] | None = None
    mount_path: str | None = None
    host_path: str | None = None
    labels: dict[str, str] | None = None

    def to_spec(self) -> PodSpec:
        volume_mounts: list[VolumeMount] = []
        volumes: list[HostPathVolume] = []
        if self.mount_path and self.host_path:
            volume_mounts.append(VolumeMount(name=WORKSPACE_VOLUME_NAME, mount_path=self.mount_path))
            volumes.append(HostPathVolume(name=WORKSPACE_VOLUME_NAME, host_path=self.host_path))

        return PodSpec(
            name=self.name,
            namespace=self.namespace,
            image=self.image,
            command=self.command,
            args=self.args,
            working_dir=self.working_dir,
            env=dict(self.env or {}),
            labels=dict(self.labels or {}),
            volume_mounts=volume_mounts,
            volumes=volumes,
        )


class ExecPodRequest(CamelModel):
    """Request model for POST /pods/{name}/exec."""

    namespace: str = Field(..., min_length=1)
    command: list[str] = Field(..., min_length=1)
    container: str | None = None


class ExecPodResponse(CamelModel):
    success: bool = True
    exit_code: int
    output: str = ""
    errors: str = ""


class CleanupRequest(CamelModel):
    namespace: str = Field(..., min_length=1)
    max_age_ms: int | None = Field(default=None, ge=0)


class ServicePortRequest(CamelModel):
    name: str | None = None
    port: int = Field(..., ge=1, le=65535)
    target_port: int | None = Field(default=None, ge=1, le=65535)
    protocol: Literal["TCP", "UDP", "SCTP"] | None = None


class CreateServiceRequest(CamelModel):
    """Request model for POST /services."""

    name: str = Field(..., min_length=1)
    namespace: str = Field(..., min_length=1)
    selector: dict[str, str]
    ports: list[ServicePortRequest] = Field(..., min_length=1)
    type: Literal["ClusterIP", "NodePort", "LoadBalancer"] | None = None

    def to_spec(self) -> ServiceSpec:
        return ServiceSpec(
            name=self.name,
            namespace=self.namespace,
            selector=dict(self.selector),
            ports=[
                ServicePort(
                    port=p.port,
                    target_port=p.target_port,
                    protocol=p.protocol or "TCP",
                    name=p.name,
                )
                for p in self.ports
            ],
            type=self.type or "ClusterIP",
        )
