"""Application configuration.

Settings are read from the environment (and an optional ``.env`` file).
Grouped views such as :attr:`Settings.kubernetes` and
:attr:`Settings.terminal` are derived from the flat fields.
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .kubernetes import DEFAULT_CLEANUP_MAX_AGE_MS, DEFAULT_KUBECONFIG_PATH, ClusterConfig
from .terminal import TerminalBridgeConfig


class Settings(BaseSettings):
    """Process-wide settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # API server
    api_host: str = "0.0.0.0"
    api_port: int = Field(default=5003, ge=1, le=65535)
    api_debug: bool = False

    # Logging
    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "console"

    # Cluster integration (initial value; the preferences store may replace it)
    k8s_enabled: bool = False
    k8s_namespace: str | None = "opencode-testing"
    k8s_kubeconfig_path: str = DEFAULT_KUBECONFIG_PATH

    # Cleanup of finished pods. An interval of 0 disables the periodic run.
    k8s_cleanup_interval_seconds: int = Field(default=0, ge=0)
    k8s_cleanup_max_age_ms: int = Field(default=DEFAULT_CLEANUP_MAX_AGE_MS, ge=0)

    @field_validator("k8s_namespace", mode="before")
    @classmethod
    def _empty_namespace_to_none(cls, v: str | None) -> str | None:
        """Treat ``K8S_NAMESPACE=""`` as unset."""
        if isinstance(v, str) and v.strip() == "":
            return None
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, v: str) -> str:
        if isinstance(v, str):
            return v.strip().upper() or "INFO"
        return v

    @property
    def kubernetes(self) -> ClusterConfig:
        """Get the initial cluster configuration."""
        return ClusterConfig(
            enabled=self.k8s_enabled,
            namespace=self.k8s_namespace,
            kubeconfig_path=self.k8s_kubeconfig_path,
        )

    @property
    def terminal(self) -> TerminalBridgeConfig:
        """Get the terminal bridge configuration.

        Without ``TERMINAL_PORT`` the bridge listens one port above the API.
        """
        config = TerminalBridgeConfig()
        if config.port is None:
            config = config.model_copy(update={"port": self.api_port + 1})
        return config


settings = Settings()

__all__ = ["Settings", "settings", "ClusterConfig", "TerminalBridgeConfig"]
