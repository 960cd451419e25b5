"""Configuration validation utilities."""

from typing import Any

import structlog

from ..config import Settings, settings
from ..services.kubernetes.kubeconfig import in_cluster_available, kubeconfig_exists

logger = structlog.get_logger(__name__)


class ConfigValidator:
    """Validates application configuration before startup."""

    def __init__(self, app_settings: Settings | None = None):
        self.settings = app_settings or settings
        self.errors: list[str] = []
        self.warnings: list[str] = []

    def validate_all(self) -> bool:
        """Validate all configuration settings."""
        self.errors.clear()
        self.warnings.clear()

        self._validate_listeners()
        self._validate_kubernetes_config()
        self._validate_terminal_config()

        for warning in self.warnings:
            logger.warning("Configuration warning", detail=warning)

        if self.errors:
            for error in self.errors:
                logger.error("Configuration error", detail=error)
            return False

        return True

    def _validate_listeners(self):
        """The API and the terminal bridge need separate ports."""
        terminal = self.settings.terminal
        if terminal.port == self.settings.api_port:
            self.errors.append(f"Terminal bridge port {terminal.port} collides with the API port")

    def _validate_kubernetes_config(self):
        cluster = self.settings.kubernetes
        if not cluster.enabled:
            return

        path = cluster.resolved_kubeconfig_path
        if not kubeconfig_exists(path) and not in_cluster_available():
            self.warnings.append(
                f"Kubernetes is enabled but no kubeconfig exists at {path} "
                "and no in-cluster service account was found"
            )

        if self.settings.k8s_cleanup_interval_seconds and self.settings.k8s_cleanup_interval_seconds < 60:
            self.warnings.append(
                f"Cleanup interval of {self.settings.k8s_cleanup_interval_seconds}s is very short"
            )

    def _validate_terminal_config(self):
        terminal = self.settings.terminal
        if terminal.tls_insecure:
            self.warnings.append("Terminal bridge skips API server certificate verification - security risk")
        if not terminal.shell:
            self.errors.append("Terminal shell command must not be empty")


def validate_configuration(app_settings: Settings | None = None) -> bool:
    """Validate application configuration."""
    validator = ConfigValidator(app_settings)
    return validator.validate_all()


def get_configuration_summary(app_settings: Settings | None = None) -> dict[str, Any]:
    """Get a summary of current configuration for debugging."""
    current = app_settings or settings
    return {
        "debug": current.api_debug,
        "kubernetes": current.kubernetes.to_dict(),
        "terminal_port": current.terminal.port,
        "cleanup_interval_seconds": current.k8s_cleanup_interval_seconds,
    }
