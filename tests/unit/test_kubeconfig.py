"""Unit tests for cluster credential resolution."""

import base64

import pytest
import yaml

from src.models.errors import KubeconfigError
from src.services.kubernetes.kubeconfig import (
    CredentialSource,
    load_incluster_credentials,
    load_kubeconfig,
    locate_credentials,
    resolve_credentials,
    resolve_kubeconfig,
)

CA_PEM = b"-----BEGIN CERTIFICATE-----\nMIIB\n-----END CERTIFICATE-----\n"


def _kubeconfig(token: str | None = "secret-token", server: str = "https://10.0.0.1:6443") -> dict:
    user = {"token": token} if token else {"client-certificate-data": base64.b64encode(b"cert").decode()}
    return {
        "apiVersion": "v1",
        "kind": "Config",
        "current-context": "dev",
        "contexts": [{"name": "dev", "context": {"cluster": "dev-cluster", "user": "dev-user"}}],
        "clusters": [
            {
                "name": "dev-cluster",
                "cluster": {
                    "server": server,
                    "certificate-authority-data": base64.b64encode(CA_PEM).decode(),
                },
            }
        ],
        "users": [{"name": "dev-user", "user": user}],
    }


@pytest.fixture
def kubeconfig_file(tmp_path):
    path = tmp_path / "kubeconfig"
    path.write_text(yaml.safe_dump(_kubeconfig()))
    return path


@pytest.fixture
def service_account_dir(tmp_path, monkeypatch):
    sa_dir = tmp_path / "serviceaccount"
    sa_dir.mkdir()
    (sa_dir / "token").write_text("in-cluster-token\n")
    (sa_dir / "ca.crt").write_bytes(CA_PEM)
    monkeypatch.setenv("KUBERNETES_SERVICE_HOST", "10.96.0.1")
    monkeypatch.setenv("KUBERNETES_SERVICE_PORT", "443")
    return sa_dir


class TestLocateCredentials:
    def test_kubeconfig_wins(self, kubeconfig_file, service_account_dir):
        """Test that an existing kubeconfig is preferred over in-cluster credentials."""
        assert locate_credentials(str(kubeconfig_file), service_account_dir) is CredentialSource.KUBECONFIG

    def test_in_cluster_fallback(self, tmp_path, service_account_dir):
        missing = tmp_path / "missing"
        assert locate_credentials(str(missing), service_account_dir) is CredentialSource.IN_CLUSTER

    def test_none_available(self, tmp_path, monkeypatch):
        monkeypatch.delenv("KUBERNETES_SERVICE_HOST", raising=False)
        assert locate_credentials(str(tmp_path / "missing"), tmp_path) is None

    def test_in_cluster_requires_env(self, tmp_path, service_account_dir, monkeypatch):
        monkeypatch.delenv("KUBERNETES_SERVICE_HOST")
        assert locate_credentials(str(tmp_path / "missing"), service_account_dir) is None


class TestResolveKubeconfig:
    def test_resolves_current_context(self):
        credentials = resolve_kubeconfig(_kubeconfig())

        assert credentials.server_url == "https://10.0.0.1:6443"
        assert credentials.bearer_token == "secret-token"
        assert credentials.ca_cert == CA_PEM
        assert credentials.source is CredentialSource.KUBECONFIG
        assert credentials.uses_token

    def test_client_certificate_user_has_no_token(self):
        credentials = resolve_kubeconfig(_kubeconfig(token=None))

        assert credentials.bearer_token is None
        assert credentials.client_cert == b"cert"
        assert not credentials.uses_token

    def test_missing_context(self):
        with pytest.raises(KubeconfigError, match="Context other not found"):
            resolve_kubeconfig(_kubeconfig(), context_name="other")

    def test_missing_cluster(self):
        document = _kubeconfig()
        document["clusters"] = []
        with pytest.raises(KubeconfigError, match="Cluster dev-cluster not found"):
            resolve_kubeconfig(document)

    def test_missing_user(self):
        document = _kubeconfig()
        document["users"] = [{"name": "someone-else", "user": {}}]
        with pytest.raises(KubeconfigError, match="User dev-user not found"):
            resolve_kubeconfig(document)

    def test_missing_current_context(self):
        document = _kubeconfig()
        del document["current-context"]
        with pytest.raises(KubeconfigError, match="no current-context"):
            resolve_kubeconfig(document)

    def test_missing_server(self):
        document = _kubeconfig()
        del document["clusters"][0]["cluster"]["server"]
        with pytest.raises(KubeconfigError, match="no server URL"):
            resolve_kubeconfig(document)

    def test_token_file_relative_to_base_dir(self, tmp_path):
        (tmp_path / "token").write_text("from-file\n")
        document = _kubeconfig()
        document["users"][0]["user"] = {"tokenFile": "token"}

        credentials = resolve_kubeconfig(document, base_dir=tmp_path)
        assert credentials.bearer_token == "from-file"

    def test_insecure_skip_tls_verify(self):
        document = _kubeconfig()
        document["clusters"][0]["cluster"]["insecure-skip-tls-verify"] = True
        assert resolve_kubeconfig(document).insecure_skip_tls_verify is True


class TestLoadKubeconfig:
    def test_missing_file(self, tmp_path):
        with pytest.raises(KubeconfigError, match="Kubeconfig not found"):
            load_kubeconfig(str(tmp_path / "missing"))

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "kubeconfig"
        path.write_text("- just\n- a list\n")
        with pytest.raises(KubeconfigError, match="not a mapping"):
            load_kubeconfig(str(path))


class TestInClusterCredentials:
    def test_builds_https_url_from_env(self, service_account_dir):
        credentials = load_incluster_credentials(service_account_dir)

        assert credentials.server_url == "https://10.96.0.1:443"
        assert credentials.bearer_token == "in-cluster-token"
        assert credentials.ca_cert == CA_PEM
        assert credentials.source is CredentialSource.IN_CLUSTER

    def test_ipv6_host_is_bracketed(self, service_account_dir, monkeypatch):
        monkeypatch.setenv("KUBERNETES_SERVICE_HOST", "fd00::1")
        credentials = load_incluster_credentials(service_account_dir)
        assert credentials.server_url == "https://[fd00::1]:443"

    def test_not_in_cluster(self, tmp_path, monkeypatch):
        monkeypatch.delenv("KUBERNETES_SERVICE_HOST", raising=False)
        with pytest.raises(KubeconfigError, match="Not running in-cluster"):
            load_incluster_credentials(tmp_path)


class TestResolveCredentials:
    def test_from_kubeconfig_file(self, kubeconfig_file, tmp_path):
        credentials = resolve_credentials(str(kubeconfig_file), tmp_path / "no-sa")
        assert credentials.bearer_token == "secret-token"

    def test_from_service_account(self, tmp_path, service_account_dir):
        credentials = resolve_credentials(str(tmp_path / "missing"), service_account_dir)
        assert credentials.bearer_token == "in-cluster-token"

    def test_nothing_available(self, tmp_path, monkeypatch):
        monkeypatch.delenv("KUBERNETES_SERVICE_HOST", raising=False)
        with pytest.raises(KubeconfigError, match="No kubeconfig found at"):
            resolve_credentials(str(tmp_path / "missing"), tmp_path)
