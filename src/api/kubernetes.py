"""Kubernetes API endpoints.

Provides endpoints for:
- Reading and replacing the cluster configuration
- Creating, inspecting and deleting runner pods and services
- One-shot command execution and pod log tails
- Cleanup of finished pods
- Locating the terminal bridge for a pod
"""

from typing import Any
from urllib.parse import urlencode

import structlog
from fastapi import APIRouter, HTTPException, Query, Request
from kubernetes.client import ApiClient

from ..dependencies import KubernetesManagerDep, SettingsDep
from ..models.errors import ClientNotInitializedError
from ..models.kubernetes import (
    CleanupRequest,
    ClusterConfigUpdate,
    CreatePodRequest,
    CreateServiceRequest,
    ExecPodRequest,
    ExecPodResponse,
    TestConnectionRequest,
)
from ..services.kubernetes import KubernetesManager
from ..services.kubernetes.client import describe_api_error

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/kubernetes", tags=["kubernetes"])


def _serialize(manager: KubernetesManager, obj: Any) -> Any:
    """Convert a client-library model to JSON-compatible camelCase data."""
    connection = manager.connector.connection
    api_client = connection.api_client if connection is not None else ApiClient()
    return api_client.sanitize_for_serialization(obj)


def _failure(action: str, error: Exception) -> HTTPException:
    return HTTPException(status_code=500, detail=f"Failed to {action}: {describe_api_error(error)}")


# -- Configuration -------------------------------------------------------------


@router.get("/config")
async def get_config(manager: KubernetesManagerDep) -> dict:
    """Current configuration plus a live connection check when enabled."""
    if manager.is_enabled():
        connection = (await manager.test_connection()).to_dict()
    else:
        connection = {"connected": False}

    return {"config": manager.get_config().to_dict(), "connection": connection}


@router.put("/config")
async def update_config(update: ClusterConfigUpdate, manager: KubernetesManagerDep) -> dict:
    manager.update_config(update.to_config())
    return {"success": True, "config": update.model_dump(by_alias=True)}


@router.post("/test-connection")
async def test_connection(manager: KubernetesManagerDep, request: TestConnectionRequest | None = None) -> dict:
    namespace = (request.namespace if request else None) or manager.current_namespace()
    result = await manager.test_connection(namespace)
    return result.to_dict()


# -- Pods ----------------------------------------------------------------------


@router.get("/pods")
async def list_pods(
    manager: KubernetesManagerDep,
    namespace: str | None = None,
    label_selector: str | None = Query(None, alias="labelSelector"),
) -> dict:
    pods = await manager.list_pods(namespace, label_selector)
    return {"pods": [pod.to_dict() for pod in pods]}


@router.get("/pods/{name}")
async def get_pod(name: str, manager: KubernetesManagerDep, namespace: str = Query(..., min_length=1)) -> dict:
    pod = await manager.get_pod(name, namespace)
    if pod is None:
        raise HTTPException(status_code=404, detail="Pod not found")
    return {"pod": _serialize(manager, pod)}


@router.post("/pods")
async def create_pod(request: CreatePodRequest, manager: KubernetesManagerDep) -> dict:
    try:
        pod_name = await manager.create_pod(request.to_spec())
    except ClientNotInitializedError:
        raise
    except Exception as e:
        raise _failure("create pod", e) from e
    return {"success": True, "podName": pod_name}


@router.delete("/pods/{name}")
async def delete_pod(name: str, manager: KubernetesManagerDep, namespace: str = Query(..., min_length=1)) -> dict:
    if not await manager.delete_pod(name, namespace):
        raise HTTPException(status_code=500, detail="Failed to delete pod")
    return {"success": True}


@router.get("/pods/{name}/logs")
async def get_pod_logs(
    name: str,
    manager: KubernetesManagerDep,
    namespace: str = Query(..., min_length=1),
    tail_lines: int = Query(100, alias="tailLines", ge=1),
) -> dict:
    logs = await manager.get_pod_logs(name, namespace, tail_lines)
    return {"logs": logs}


@router.post("/pods/{name}/exec", response_model=ExecPodResponse)
async def exec_in_pod(name: str, request: ExecPodRequest, manager: KubernetesManagerDep) -> ExecPodResponse:
    try:
        result = await manager.exec_in_pod(name, request.namespace, request.command, request.container)
    except ClientNotInitializedError:
        raise
    except Exception as e:
        logger.error("Exec request failed", pod=name, namespace=request.namespace, error=describe_api_error(e))
        raise _failure("exec in pod", e) from e

    return ExecPodResponse(exit_code=result.exit_code, output=result.stdout, errors=result.stderr)


@router.post("/cleanup")
async def cleanup_pods(request: CleanupRequest, manager: KubernetesManagerDep) -> dict:
    deleted = await manager.cleanup_old_pods(request.namespace, request.max_age_ms)
    return {"success": True, "deleted": deleted}


# -- Services ------------------------------------------------------------------


@router.get("/services")
async def list_services(
    manager: KubernetesManagerDep,
    namespace: str | None = None,
    label_selector: str | None = Query(None, alias="labelSelector"),
) -> dict:
    services = await manager.list_services(namespace, label_selector)
    return {"services": [service.to_dict() for service in services]}


@router.get("/services/{name}")
async def get_service(name: str, manager: KubernetesManagerDep, namespace: str = Query(..., min_length=1)) -> dict:
    service = await manager.get_service(name, namespace)
    if service is None:
        raise HTTPException(status_code=404, detail="Service not found")
    return {"service": _serialize(manager, service)}


@router.post("/services")
async def create_service(request: CreateServiceRequest, manager: KubernetesManagerDep) -> dict:
    try:
        service_name = await manager.create_service(request.to_spec())
    except ClientNotInitializedError:
        raise
    except Exception as e:
        raise _failure("create service", e) from e
    return {"success": True, "serviceName": service_name}


@router.delete("/services/{name}")
async def delete_service(
    name: str, manager: KubernetesManagerDep, namespace: str = Query(..., min_length=1)
) -> dict:
    if not await manager.delete_service(name, namespace):
        raise HTTPException(status_code=500, detail="Failed to delete service")
    return {"success": True}


# -- Terminal bridge -----------------------------------------------------------


@router.get("/exec-ws-url")
async def get_exec_ws_url(
    request: Request,
    settings: SettingsDep,
    pod: str = Query(..., min_length=1),
    namespace: str = Query(..., min_length=1),
    container: str | None = None,
) -> dict:
    """WebSocket URL of the terminal bridge for a pod.

    The bridge listens on its own port on the same host. ``wss`` is used
    when a proxy reports the original request as HTTPS.
    """
    terminal = settings.terminal
    scheme = "wss" if request.headers.get("x-forwarded-proto") == "https" else "ws"
    host = request.url.hostname or "localhost"
    if ":" in host:
        host = f"[{host}]"

    query = {"pod": pod, "namespace": namespace}
    if container:
        query["container"] = container
    return {"wsUrl": f"{scheme}://{host}:{terminal.port}{terminal.path}?{urlencode(query)}"}
