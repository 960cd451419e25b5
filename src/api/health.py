"""Health check endpoint."""

from fastapi import APIRouter

from ..dependencies import KubernetesManagerDep

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(manager: KubernetesManagerDep) -> dict:
    """Liveness plus the cluster integration state.

    Does not contact the cluster; use ``/api/kubernetes/test-connection``
    for that.
    """
    connector = manager.connector
    return {
        "status": "healthy",
        "kubernetes": {
            "enabled": connector.is_enabled(),
            "connected": connector.connection is not None,
            "error": connector.get_initialization_error(),
        },
    }
