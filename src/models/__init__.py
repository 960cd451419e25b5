"""Data models for the cluster integration API."""

from .errors import (
    ClientNotInitializedError,
    ExecError,
    KubeconfigError,
    KubernetesError,
    TokenAuthRequiredError,
)

__all__ = [
    # Error models
    "KubernetesError",
    "ClientNotInitializedError",
    "KubeconfigError",
    "TokenAuthRequiredError",
    "ExecError",
]
