"""Kubernetes-based runner pod services.

This module provides the cluster connector, pod/service management,
one-shot exec and cleanup of finished pods.
"""

from .client import ClusterConnection, ClusterConnector
from .manager import KubernetesManager
from .models import ExecResult, PodPhase, PodSpec, PodStatus, ServiceSpec, ServiceStatus

__all__ = [
    "ClusterConnection",
    "ClusterConnector",
    "ExecResult",
    "KubernetesManager",
    "PodPhase",
    "PodSpec",
    "PodStatus",
    "ServiceSpec",
    "ServiceStatus",
]
