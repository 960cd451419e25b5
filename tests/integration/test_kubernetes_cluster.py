"""Integration test against a live Kubernetes cluster.

Requires a kubeconfig with a current context that may create pods in the
target namespace.

Usage:
    KUBECONFIG=~/.kube/config K8S_TEST_NAMESPACE=default \
        python -m pytest tests/integration/test_kubernetes_cluster.py -v
"""

import asyncio
import os
import uuid

import pytest

from src.config.kubernetes import ClusterConfig
from src.services.kubernetes import ClusterConnector, KubernetesManager, PodPhase, PodSpec

KUBECONFIG = os.environ.get("KUBECONFIG", os.path.expanduser("~/.kube/config"))
NAMESPACE = os.environ.get("K8S_TEST_NAMESPACE", "default")
IMAGE = os.environ.get("K8S_TEST_IMAGE", "busybox:1.36")

pytestmark = pytest.mark.integration

skip_no_cluster = pytest.mark.skipif(
    not os.path.isfile(KUBECONFIG),
    reason=f"No kubeconfig at {KUBECONFIG}",
)


@pytest.fixture
def manager():
    connector = ClusterConnector(ClusterConfig(enabled=True, namespace=NAMESPACE, kubeconfig_path=KUBECONFIG))
    if not connector.is_enabled():
        pytest.skip(connector.get_initialization_error() or "Kubernetes unavailable")
    return KubernetesManager(connector)


async def _wait_for_phase(manager, name, phases, timeout=120):
    deadline = asyncio.get_running_loop().time() + timeout
    while asyncio.get_running_loop().time() < deadline:
        pods = await manager.list_pods(NAMESPACE, f"test-run={name}")
        if pods and pods[0].phase in phases:
            return pods[0]
        await asyncio.sleep(1)
    raise TimeoutError(f"Pod {name} did not reach {phases}")


@skip_no_cluster
class TestLiveCluster:
    @pytest.mark.asyncio
    async def test_connection(self, manager):
        result = await manager.test_connection()
        assert result.connected, result.error

    @pytest.mark.asyncio
    async def test_pod_lifecycle_and_exec(self, manager):
        """Create a pod, exec in it, read logs and delete it."""
        name = f"runner-it-{uuid.uuid4().hex[:8]}"
        await manager.create_pod(
            PodSpec(
                name=name,
                namespace=NAMESPACE,
                image=IMAGE,
                command=["sh", "-c", "echo started; sleep 300"],
                labels={"test-run": name},
            )
        )
        try:
            status = await _wait_for_phase(manager, name, {PodPhase.RUNNING})
            assert status.labels["managed-by"] == "opencode-manager"

            result = await manager.exec_in_pod(name, NAMESPACE, ["sh", "-c", "echo out; echo err >&2; exit 7"])
            assert result.exit_code == 7
            assert result.stdout == "out\n"
            assert result.stderr == "err\n"

            logs = await manager.get_pod_logs(name, NAMESPACE, tail_lines=10)
            assert "started" in logs
        finally:
            assert await manager.delete_pod(name, NAMESPACE) is True
