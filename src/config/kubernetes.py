"""Kubernetes-specific configuration.

This module provides the cluster configuration consumed by the cluster
connector, plus the labels that mark resources as owned by this service.
"""

from dataclasses import dataclass, replace

DEFAULT_KUBECONFIG_PATH = "/workspace/.kube/kubeconfig"
DEFAULT_NAMESPACE = "default"

# Ownership labels. ``managed-by`` is the only selector cleanup may use.
MANAGED_BY = "opencode-manager"
MANAGED_LABELS: dict[str, str] = {
    "app": MANAGED_BY,
    "managed-by": MANAGED_BY,
}
MANAGED_SELECTOR = f"managed-by={MANAGED_BY}"

RUNNER_CONTAINER_NAME = "runner"

# 24 hours
DEFAULT_CLEANUP_MAX_AGE_MS = 24 * 60 * 60 * 1000


@dataclass(frozen=True)
class ClusterConfig:
    """Cluster integration settings.

    Supplied by the preferences store; replaced wholesale on change.
    """

    enabled: bool = False

    # Namespace used when a call does not name one
    namespace: str | None = None

    # Falls back to DEFAULT_KUBECONFIG_PATH when unset
    kubeconfig_path: str | None = None

    @property
    def resolved_kubeconfig_path(self) -> str:
        """Get the kubeconfig path to try first."""
        return self.kubeconfig_path or DEFAULT_KUBECONFIG_PATH

    def target_namespace(self, namespace: str | None = None) -> str:
        """Pick the namespace for a call.

        Args:
            namespace: Namespace requested by the caller, if any

        Returns:
            The requested namespace, the configured one, or ``default``.
        """
        return namespace or self.namespace or DEFAULT_NAMESPACE

    def disabled(self) -> "ClusterConfig":
        """Copy of this config with the integration switched off."""
        return replace(self, enabled=False)

    def to_dict(self) -> dict:
        return {
            "enabled": self.enabled,
            "namespace": self.namespace,
            "kubeconfigPath": self.kubeconfig_path,
        }
