"""Kubernetes client factory.

Provides the cluster connector: it resolves credentials (kubeconfig file or
in-cluster service account) and owns the API client built from them.

A built client is wrapped in an immutable :class:`ClusterConnection`. A
config change swaps in a new connection (or none) wholesale; callers that
already hold the previous connection finish against it undisturbed.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, replace

import structlog
from kubernetes import client
from kubernetes import config as k8s_config
from kubernetes.client import ApiClient, ApiException, CoreV1Api

from ...config.kubernetes import ClusterConfig
from ...models.errors import ClientNotInitializedError
from .kubeconfig import CredentialSource, locate_credentials
from .models import ConnectionTestResult

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ClusterConnection:
    """A live API client and where its credentials came from."""

    api_client: ApiClient
    core_api: CoreV1Api
    source: CredentialSource
    host: str


ConnectionFactory = Callable[[ClusterConfig], ClusterConnection | None]


def build_connection(cluster_config: ClusterConfig) -> ClusterConnection | None:
    """Load credentials and build an API client.

    Tries the kubeconfig file first, then in-cluster credentials. Each
    connection gets its own ``Configuration`` so the library's global
    default is never touched.

    Returns:
        The connection, or None if no credential source is available.
    """
    kubeconfig_path = cluster_config.resolved_kubeconfig_path
    source = locate_credentials(kubeconfig_path)
    configuration = client.Configuration()

    if source is CredentialSource.KUBECONFIG:
        k8s_config.load_kube_config(config_file=kubeconfig_path, client_configuration=configuration)
        logger.info("Loaded kubeconfig", path=kubeconfig_path)
    elif source is CredentialSource.IN_CLUSTER:
        k8s_config.load_incluster_config(client_configuration=configuration)
        logger.info("Loaded in-cluster Kubernetes configuration")
    else:
        return None

    api_client = ApiClient(configuration)
    return ClusterConnection(
        api_client=api_client,
        core_api=CoreV1Api(api_client),
        source=source,
        host=configuration.host,
    )


def describe_api_error(error: Exception) -> str:
    """Short, non-empty description of a client or transport error."""
    if isinstance(error, ApiException):
        reason = error.reason or "API error"
        return f"{error.status} {reason}" if error.status else reason
    return str(error) or error.__class__.__name__


class ClusterConnector:
    """Owns the cluster configuration and the API client built from it.

    Initialization never raises: any failure leaves the connector disabled
    and records the error for :meth:`get_initialization_error`.
    """

    def __init__(
        self,
        cluster_config: ClusterConfig | None = None,
        connection_factory: ConnectionFactory = build_connection,
    ):
        self._config = cluster_config or ClusterConfig()
        self._connection: ClusterConnection | None = None
        self._init_error: str | None = None
        self._build = connection_factory

        if self._config.enabled:
            self.initialize()

    @property
    def config(self) -> ClusterConfig:
        return self._config

    @property
    def connection(self) -> ClusterConnection | None:
        return self._connection

    def is_enabled(self) -> bool:
        return self._config.enabled

    def get_initialization_error(self) -> str | None:
        return self._init_error

    def initialize(self) -> ClusterConnection | None:
        """Build a connection from the current config.

        Returns:
            The new connection, or None if the integration ends up disabled.
        """
        kubeconfig_path = self._config.resolved_kubeconfig_path
        try:
            connection = self._build(self._config)
        except Exception as e:
            self._init_error = f"Failed to initialize Kubernetes client: {e}"
            self._connection = None
            self._config = self._config.disabled()
            logger.warning("Kubernetes initialization failed, features will be disabled", error=str(e))
            return None

        if connection is None:
            self._init_error = f"No kubeconfig found at {kubeconfig_path} and not running in-cluster"
            self._connection = None
            self._config = self._config.disabled()
            logger.info(
                "Kubernetes not configured, features will be disabled",
                kubeconfig_path=kubeconfig_path,
            )
            return None

        self._init_error = None
        self._connection = connection
        if not self._config.enabled:
            self._config = replace(self._config, enabled=True)
        logger.info(
            "Kubernetes client initialized successfully",
            source=connection.source.value,
            host=connection.host,
        )
        return connection

    def update_config(self, cluster_config: ClusterConfig) -> None:
        """Replace the configuration and rebuild the client.

        The previous connection is always discarded, even if the new config
        is identical, so stale credentials are never reused.
        """
        self._connection = None
        self._init_error = None
        self._config = cluster_config
        logger.info(
            "Kubernetes configuration updated",
            enabled=cluster_config.enabled,
            namespace=cluster_config.namespace,
            kubeconfig_path=cluster_config.kubeconfig_path,
        )

        if cluster_config.enabled:
            self.initialize()

    def require_connection(self) -> ClusterConnection:
        """Get the current connection, building it lazily when enabled.

        Raises:
            ClientNotInitializedError: If the integration is disabled.
        """
        connection = self._connection
        if connection is None and self._config.enabled:
            connection = self.initialize()
        if connection is None:
            raise ClientNotInitializedError()
        return connection

    async def test_connection(self, namespace: str | None = None) -> ConnectionTestResult:
        """Check that the cluster answers a lightweight listing call.

        Never raises; failures are reported in the result.
        """
        connection = self._connection
        if connection is None and self._config.enabled:
            connection = self.initialize()
        if connection is None:
            return ConnectionTestResult(
                connected=False,
                error=self._init_error or str(ClientNotInitializedError()),
            )

        target_namespace = self._config.target_namespace(namespace)
        try:
            await asyncio.to_thread(connection.core_api.list_namespaced_pod, target_namespace, limit=1)
        except Exception as e:
            error = describe_api_error(e)
            logger.error("Kubernetes connection test failed", namespace=target_namespace, error=error)
            return ConnectionTestResult(connected=False, error=error)

        return ConnectionTestResult(connected=True, namespace=target_namespace)
