"""Terminal bridge configuration.

The bridge runs as its own WebSocket listener next to the HTTP API and
opens one upstream WebSocket per browser connection directly against the
cluster's ``exec`` subresource.
"""

from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

EXEC_SUBPROTOCOL = "v4.channel.k8s.io"


class TerminalBridgeConfig(BaseSettings):
    """Terminal bridge settings."""

    model_config = SettingsConfigDict(
        env_prefix="terminal_",
        env_file=".env",
        extra="ignore",
    )

    # -- Listener --------------------------------------------------------------
    host: str = "0.0.0.0"
    port: int | None = Field(
        default=None,
        ge=1,
        le=65535,
        description="Listener port. Unset means one above the API port.",
    )
    path: str = Field(
        default="/ws/kubernetes/exec",
        description="Path of the upgrade-only WebSocket endpoint.",
    )

    # -- Remote session --------------------------------------------------------
    shell: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["/bin/sh", "-i"],
        description="Command started inside the container for interactive sessions.",
    )
    subprotocol: str = Field(
        default=EXEC_SUBPROTOCOL,
        description="WebSocket subprotocol negotiated with the API server.",
    )

    # -- TLS -------------------------------------------------------------------
    tls_insecure: bool = Field(
        default=False,
        description=(
            "Skip verification of the API server certificate (NOT recommended). "
            "When False the cluster CA from the kubeconfig is used if present, "
            "otherwise the system trust store."
        ),
    )

    # -- Validators ------------------------------------------------------------

    @field_validator("path", mode="before")
    @classmethod
    def _ensure_leading_slash(cls, v: str) -> str:
        """Normalise ``ws/kubernetes/exec`` to ``/ws/kubernetes/exec``."""
        if isinstance(v, str) and not v.startswith("/"):
            return f"/{v}"
        return v

    @field_validator("shell", mode="before")
    @classmethod
    def _split_shell(cls, v: str | list[str]) -> list[str]:
        """Accept ``TERMINAL_SHELL="/bin/bash -i"`` as well as a JSON list.

        An empty string keeps the default shell.
        """
        if isinstance(v, str):
            parts = v.split()
            return parts or ["/bin/sh", "-i"]
        return v
