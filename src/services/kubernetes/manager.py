"""Pod and service management.

All calls go through the connector's current connection. Reads degrade
(empty list, ``None``, empty logs) so dashboards keep working during
cluster trouble; creates and execs raise so callers can retry or report;
deletes return a success flag to keep cleanup idempotent.
"""

import asyncio
from collections.abc import AsyncIterator
from datetime import UTC, datetime

import structlog
from kubernetes.client import ApiException, CoreV1Api, V1Pod, V1Service

from ...config.kubernetes import DEFAULT_CLEANUP_MAX_AGE_MS, ClusterConfig
from ..interfaces import ResourceManagerInterface
from .cleanup import cleanup_old_pods
from .client import ClusterConnector, describe_api_error
from .exec import PodExecutor
from .manifests import create_pod_manifest, create_service_manifest
from .models import (
    ConnectionTestResult,
    ExecChunk,
    ExecExit,
    ExecResult,
    PodPhase,
    PodSpec,
    PodStatus,
    ServicePortStatus,
    ServiceSpec,
    ServiceStatus,
    age_ms,
)

logger = structlog.get_logger(__name__)


def _is_not_found(error: Exception) -> bool:
    return isinstance(error, ApiException) and error.status == 404


def summarize_pod(pod: V1Pod, now: datetime | None = None) -> PodStatus:
    metadata = pod.metadata
    status = pod.status
    containers = pod.spec.containers if pod.spec and pod.spec.containers else []
    container_statuses = status.container_statuses if status else None

    return PodStatus(
        name=(metadata.name if metadata else None) or "",
        namespace=(metadata.namespace if metadata else None) or "",
        phase=PodPhase.parse(status.phase if status else None),
        ready=container_statuses is not None and all(c.ready for c in container_statuses),
        age_ms=age_ms(status.start_time if status else None, now),
        image=containers[0].image if containers else None,
        labels=dict((metadata.labels if metadata else None) or {}),
    )


def summarize_service(service: V1Service, now: datetime | None = None) -> ServiceStatus:
    metadata = service.metadata
    spec = service.spec
    ports = [
        ServicePortStatus(port=p.port, target_port=p.target_port, protocol=p.protocol or "TCP")
        for p in ((spec.ports if spec else None) or [])
    ]

    return ServiceStatus(
        name=(metadata.name if metadata else None) or "",
        namespace=(metadata.namespace if metadata else None) or "",
        type=(spec.type if spec else None) or "ClusterIP",
        ports=ports,
        selector=dict((spec.selector if spec else None) or {}),
        age_ms=age_ms(metadata.creation_timestamp if metadata else None, now),
        cluster_ip=spec.cluster_ip if spec else None,
    )


class KubernetesManager(ResourceManagerInterface):
    """Manages pods and services created by this service."""

    def __init__(self, connector: ClusterConnector, executor: PodExecutor | None = None):
        self._connector = connector
        self._executor = executor or PodExecutor(connector)

    @property
    def connector(self) -> ClusterConnector:
        return self._connector

    def is_enabled(self) -> bool:
        return self._connector.is_enabled()

    def get_config(self) -> ClusterConfig:
        return self._connector.config

    def current_namespace(self) -> str | None:
        return self._connector.config.namespace

    def update_config(self, cluster_config: ClusterConfig) -> None:
        self._connector.update_config(cluster_config)

    async def test_connection(self, namespace: str | None = None) -> ConnectionTestResult:
        return await self._connector.test_connection(namespace)

    def _core_api(self) -> CoreV1Api:
        return self._connector.require_connection().core_api

    # -- Pods -----------------------------------------------------------------

    async def create_pod(self, spec: PodSpec) -> str:
        core_api = self._core_api()
        manifest = create_pod_manifest(spec)

        try:
            created = await asyncio.to_thread(core_api.create_namespaced_pod, spec.namespace, manifest)
        except Exception as e:
            logger.error("Failed to create pod", pod=spec.name, namespace=spec.namespace, error=describe_api_error(e))
            raise

        logger.info("Created pod", pod=spec.name, namespace=spec.namespace, image=spec.image)
        metadata = getattr(created, "metadata", None)
        return (metadata.name if metadata else None) or spec.name

    async def get_pod(self, name: str, namespace: str) -> V1Pod | None:
        core_api = self._core_api()
        try:
            return await asyncio.to_thread(core_api.read_namespaced_pod, name, namespace)
        except Exception as e:
            if _is_not_found(e):
                logger.debug("Pod not found", pod=name, namespace=namespace)
            else:
                logger.error("Failed to get pod", pod=name, namespace=namespace, error=describe_api_error(e))
            return None

    async def list_pods(self, namespace: str | None = None, label_selector: str | None = None) -> list[PodStatus]:
        core_api = self._core_api()
        target_namespace = self._connector.config.target_namespace(namespace)

        try:
            response = await asyncio.to_thread(
                core_api.list_namespaced_pod,
                target_namespace,
                label_selector=label_selector,
            )
        except Exception as e:
            logger.error(
                "Failed to list pods",
                namespace=target_namespace,
                label_selector=label_selector,
                error=describe_api_error(e),
            )
            return []

        now = datetime.now(UTC)
        return [summarize_pod(pod, now) for pod in (response.items or [])]

    async def delete_pod(self, name: str, namespace: str) -> bool:
        core_api = self._core_api()
        try:
            await asyncio.to_thread(core_api.delete_namespaced_pod, name, namespace)
        except Exception as e:
            if _is_not_found(e):
                logger.info("Pod already deleted", pod=name, namespace=namespace)
            else:
                logger.error("Failed to delete pod", pod=name, namespace=namespace, error=describe_api_error(e))
            return False

        logger.info("Deleted pod", pod=name, namespace=namespace)
        return True

    async def get_pod_logs(self, name: str, namespace: str, tail_lines: int = 100) -> str:
        core_api = self._core_api()
        try:
            logs = await asyncio.to_thread(
                core_api.read_namespaced_pod_log,
                name,
                namespace,
                tail_lines=tail_lines,
                timestamps=True,
            )
        except Exception as e:
            logger.error("Failed to get pod logs", pod=name, namespace=namespace, error=describe_api_error(e))
            return ""
        return logs or ""

    def stream_exec(
        self, name: str, namespace: str, command: list[str], container: str | None = None
    ) -> AsyncIterator[ExecChunk | ExecExit]:
        return self._executor.stream(name, namespace, command, container)

    async def exec_in_pod(
        self, name: str, namespace: str, command: list[str], container: str | None = None
    ) -> ExecResult:
        return await self._executor.run(name, namespace, command, container)

    async def cleanup_old_pods(self, namespace: str, max_age_ms: int | None = None) -> int:
        # Fail fast when disabled rather than reporting zero deletions
        self._core_api()
        return await cleanup_old_pods(
            self,
            namespace,
            DEFAULT_CLEANUP_MAX_AGE_MS if max_age_ms is None else max_age_ms,
        )

    # -- Services -------------------------------------------------------------

    async def create_service(self, spec: ServiceSpec) -> str:
        core_api = self._core_api()
        manifest = create_service_manifest(spec)

        try:
            created = await asyncio.to_thread(core_api.create_namespaced_service, spec.namespace, manifest)
        except Exception as e:
            logger.error(
                "Failed to create service", service=spec.name, namespace=spec.namespace, error=describe_api_error(e)
            )
            raise

        logger.info("Created service", service=spec.name, namespace=spec.namespace)
        metadata = getattr(created, "metadata", None)
        return (metadata.name if metadata else None) or spec.name

    async def get_service(self, name: str, namespace: str) -> V1Service | None:
        core_api = self._core_api()
        try:
            return await asyncio.to_thread(core_api.read_namespaced_service, name, namespace)
        except Exception as e:
            if _is_not_found(e):
                logger.debug("Service not found", service=name, namespace=namespace)
            else:
                logger.error("Failed to get service", service=name, namespace=namespace, error=describe_api_error(e))
            return None

    async def list_services(
        self, namespace: str | None = None, label_selector: str | None = None
    ) -> list[ServiceStatus]:
        core_api = self._core_api()
        target_namespace = self._connector.config.target_namespace(namespace)

        try:
            response = await asyncio.to_thread(
                core_api.list_namespaced_service,
                target_namespace,
                label_selector=label_selector,
            )
        except Exception as e:
            logger.error(
                "Failed to list services",
                namespace=target_namespace,
                label_selector=label_selector,
                error=describe_api_error(e),
            )
            return []

        now = datetime.now(UTC)
        return [summarize_service(service, now) for service in (response.items or [])]

    async def delete_service(self, name: str, namespace: str) -> bool:
        core_api = self._core_api()
        try:
            await asyncio.to_thread(core_api.delete_namespaced_service, name, namespace)
        except Exception as e:
            if _is_not_found(e):
                logger.info("Service already deleted", service=name, namespace=namespace)
            else:
                logger.error(
                    "Failed to delete service", service=name, namespace=namespace, error=describe_api_error(e)
                )
            return False

        logger.info("Deleted service", service=name, namespace=namespace)
        return True
