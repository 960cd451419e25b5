"""Cluster credential resolution.

Single place that decides where cluster credentials come from:

1. a kubeconfig file at the configured path, or
2. the service-account files mounted into a pod (in-cluster).

The cluster connector uses :func:`locate_credentials` to pick the source
and hands the file to the client library loader. The terminal bridge
needs the raw values (server URL, CA, bearer token) to open its own
WebSocket, and uses :func:`resolve_credentials`.
"""

import base64
import binascii
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import structlog
import yaml

from ...models.errors import KubeconfigError

logger = structlog.get_logger(__name__)

SERVICE_ACCOUNT_DIR = Path("/var/run/secrets/kubernetes.io/serviceaccount")
SERVICE_HOST_ENV = "KUBERNETES_SERVICE_HOST"
SERVICE_PORT_ENV = "KUBERNETES_SERVICE_PORT"


class CredentialSource(str, Enum):
    KUBECONFIG = "kubeconfig"
    IN_CLUSTER = "in-cluster"


@dataclass(frozen=True)
class ClusterCredentials:
    """Resolved authentication context for one cluster."""

    server_url: str
    source: CredentialSource
    ca_cert: bytes | None = None
    bearer_token: str | None = None
    client_cert: bytes | None = None
    client_key: bytes | None = None
    insecure_skip_tls_verify: bool = False

    @property
    def uses_token(self) -> bool:
        return bool(self.bearer_token)


def kubeconfig_exists(path: str) -> bool:
    return os.path.isfile(path)


def in_cluster_available(service_account_dir: Path = SERVICE_ACCOUNT_DIR) -> bool:
    """Check whether this process runs inside a pod with a mounted token."""
    return bool(os.environ.get(SERVICE_HOST_ENV)) and (service_account_dir / "token").is_file()


def locate_credentials(
    kubeconfig_path: str,
    service_account_dir: Path = SERVICE_ACCOUNT_DIR,
) -> CredentialSource | None:
    """Decide which credential source to use.

    A kubeconfig file at ``kubeconfig_path`` always wins over in-cluster
    credentials. Returns ``None`` when neither is available.
    """
    if kubeconfig_exists(kubeconfig_path):
        return CredentialSource.KUBECONFIG
    if in_cluster_available(service_account_dir):
        return CredentialSource.IN_CLUSTER
    return None


def load_kubeconfig(path: str) -> dict[str, Any]:
    """Read and parse a kubeconfig file.

    Raises:
        KubeconfigError: If the file is missing, unreadable or not a mapping.
    """
    try:
        with open(path, encoding="utf-8") as f:
            document = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise KubeconfigError(f"Kubeconfig not found: {path}") from e
    except (OSError, yaml.YAMLError) as e:
        raise KubeconfigError(f"Failed to read kubeconfig {path}: {e}") from e

    if not isinstance(document, dict):
        raise KubeconfigError(f"Kubeconfig {path} is not a mapping")
    return document


def _find_named(entries: list[dict] | None, name: str, kind: str) -> dict:
    for entry in entries or []:
        if isinstance(entry, dict) and entry.get("name") == name:
            return entry.get(kind) or {}
    raise KubeconfigError(f"{kind.capitalize()} {name} not found")


def _decode_data(value: str, field_name: str) -> bytes:
    try:
        return base64.b64decode(value, validate=False)
    except (binascii.Error, ValueError) as e:
        raise KubeconfigError(f"Invalid base64 in {field_name}") from e


def _read_file(path: str, base_dir: Path | None) -> bytes:
    file_path = Path(path)
    if base_dir is not None and not file_path.is_absolute():
        file_path = base_dir / file_path
    try:
        return file_path.read_bytes()
    except OSError as e:
        raise KubeconfigError(f"Failed to read {file_path}: {e}") from e


def _inline_or_file(section: dict, key: str, base_dir: Path | None) -> bytes | None:
    """Resolve ``<key>-data`` (base64) or ``<key>`` (file path) from a section."""
    data = section.get(f"{key}-data")
    if data:
        return _decode_data(data, f"{key}-data")
    path = section.get(key)
    if path:
        return _read_file(path, base_dir)
    return None


def resolve_kubeconfig(
    document: dict[str, Any],
    context_name: str | None = None,
    base_dir: Path | None = None,
) -> ClusterCredentials:
    """Resolve the cluster and user of a kubeconfig context.

    Args:
        document: Parsed kubeconfig
        context_name: Context to use; defaults to ``current-context``
        base_dir: Directory relative file references are resolved against

    Returns:
        Credentials for the context's cluster and user.

    Raises:
        KubeconfigError: If the context, cluster or user cannot be found.
    """
    name = context_name or document.get("current-context")
    if not name:
        raise KubeconfigError("Kubeconfig has no current-context")

    context = _find_named(document.get("contexts"), name, "context")
    cluster = _find_named(document.get("clusters"), context.get("cluster", ""), "cluster")
    user = _find_named(document.get("users"), context.get("user", ""), "user")

    server = cluster.get("server")
    if not server:
        raise KubeconfigError(f"Cluster {context.get('cluster')} has no server URL")

    token = user.get("token")
    if not token and user.get("tokenFile"):
        token = _read_file(user["tokenFile"], base_dir).decode("utf-8").strip()

    return ClusterCredentials(
        server_url=server,
        source=CredentialSource.KUBECONFIG,
        ca_cert=_inline_or_file(cluster, "certificate-authority", base_dir),
        bearer_token=token or None,
        client_cert=_inline_or_file(user, "client-certificate", base_dir),
        client_key=_inline_or_file(user, "client-key", base_dir),
        insecure_skip_tls_verify=bool(cluster.get("insecure-skip-tls-verify", False)),
    )


def load_incluster_credentials(service_account_dir: Path = SERVICE_ACCOUNT_DIR) -> ClusterCredentials:
    """Build credentials from the mounted service account.

    Raises:
        KubeconfigError: If not running in a pod.
    """
    host = os.environ.get(SERVICE_HOST_ENV)
    port = os.environ.get(SERVICE_PORT_ENV, "443")
    if not host:
        raise KubeconfigError("Not running in-cluster: KUBERNETES_SERVICE_HOST is not set")

    if ":" in host:
        host = f"[{host}]"

    token = _read_file(str(service_account_dir / "token"), None).decode("utf-8").strip()
    ca_path = service_account_dir / "ca.crt"
    ca_cert = ca_path.read_bytes() if ca_path.is_file() else None

    return ClusterCredentials(
        server_url=f"https://{host}:{port}",
        source=CredentialSource.IN_CLUSTER,
        ca_cert=ca_cert,
        bearer_token=token,
    )


def resolve_credentials(
    kubeconfig_path: str,
    service_account_dir: Path = SERVICE_ACCOUNT_DIR,
) -> ClusterCredentials:
    """Resolve credentials from the kubeconfig or, failing that, in-cluster.

    Raises:
        KubeconfigError: If no source is available or it cannot be resolved.
    """
    source = locate_credentials(kubeconfig_path, service_account_dir)
    if source is CredentialSource.KUBECONFIG:
        document = load_kubeconfig(kubeconfig_path)
        return resolve_kubeconfig(document, base_dir=Path(kubeconfig_path).parent)
    if source is CredentialSource.IN_CLUSTER:
        return load_incluster_credentials(service_account_dir)
    raise KubeconfigError(f"No kubeconfig found at {kubeconfig_path} and not running in-cluster")
