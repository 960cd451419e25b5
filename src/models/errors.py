"""Error types for the cluster integration."""


class KubernetesError(Exception):
    """Base class for cluster integration errors."""


class ClientNotInitializedError(KubernetesError):
    """Raised when a cluster call is made while the integration is disabled."""

    def __init__(self, message: str = "Kubernetes client not initialized"):
        super().__init__(message)


class KubeconfigError(KubernetesError):
    """Raised when cluster credentials cannot be resolved.

    Covers a missing or unreadable kubeconfig and dangling
    context/cluster/user references.
    """


class TokenAuthRequiredError(KubeconfigError):
    """Raised by the terminal bridge when the user entry has no bearer token."""

    def __init__(self, message: str = "Token-based authentication required"):
        super().__init__(message)


class ExecError(KubernetesError):
    """Raised when an exec stream cannot be opened or ends without a status."""
