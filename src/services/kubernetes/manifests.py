"""Pod and Service manifests for managed resources."""

from kubernetes import client

from ...config.kubernetes import MANAGED_LABELS, RUNNER_CONTAINER_NAME
from .models import PodSpec, ServiceSpec


def managed_labels(extra: dict[str, str] | None = None) -> dict[str, str]:
    """Merge caller labels with the ownership labels.

    The ownership labels are applied last so a caller cannot drop or
    override them.
    """
    labels = dict(extra or {})
    labels.update(MANAGED_LABELS)
    return labels


def create_pod_manifest(spec: PodSpec) -> client.V1Pod:
    """Create a Pod manifest for a runner pod.

    Args:
        spec: Pod specification

    Returns:
        V1Pod manifest ready for creation.
    """
    env = [client.V1EnvVar(name=name, value=value) for name, value in spec.env.items()] or None

    volume_mounts = [
        client.V1VolumeMount(name=mount.name, mount_path=mount.mount_path) for mount in spec.volume_mounts
    ] or None

    volumes = [
        client.V1Volume(
            name=volume.name,
            host_path=client.V1HostPathVolumeSource(path=volume.host_path),
        )
        for volume in spec.volumes
    ] or None

    container = client.V1Container(
        name=RUNNER_CONTAINER_NAME,
        image=spec.image,
        command=spec.command,
        args=spec.args,
        working_dir=spec.working_dir,
        env=env,
        volume_mounts=volume_mounts,
    )

    return client.V1Pod(
        api_version="v1",
        kind="Pod",
        metadata=client.V1ObjectMeta(
            name=spec.name,
            namespace=spec.namespace,
            labels=managed_labels(spec.labels),
        ),
        spec=client.V1PodSpec(
            containers=[container],
            volumes=volumes,
            restart_policy="Never",
        ),
    )


def create_service_manifest(spec: ServiceSpec) -> client.V1Service:
    """Create a Service manifest.

    ``targetPort`` defaults to ``port`` and ``protocol`` to TCP.
    """
    ports = [
        client.V1ServicePort(
            name=port.name,
            port=port.port,
            target_port=port.resolved_target_port,
            protocol=port.protocol or "TCP",
        )
        for port in spec.ports
    ]

    return client.V1Service(
        api_version="v1",
        kind="Service",
        metadata=client.V1ObjectMeta(
            name=spec.name,
            namespace=spec.namespace,
            labels=managed_labels(),
        ),
        spec=client.V1ServiceSpec(
            selector=spec.selector,
            type=spec.type or "ClusterIP",
            ports=ports,
        ),
    )
