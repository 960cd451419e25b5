"""Application entry point.

Builds the shared cluster connector and serves two listeners from one
process: the HTTP API and the terminal bridge WebSocket endpoint.
"""

import asyncio
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .api import health, kubernetes, terminal
from .config import Settings, settings
from .models.errors import ClientNotInitializedError
from .services.kubernetes import ClusterConnector, KubernetesManager
from .services.kubernetes.cleanup import CleanupScheduler
from .services.kubernetes.kubeconfig import resolve_credentials
from .services.terminal import TerminalBridge
from .utils.config_validator import get_configuration_summary, validate_configuration
from .utils.logging import setup_logging

logger = structlog.get_logger(__name__)


async def client_not_initialized_handler(request: Request, exc: ClientNotInitializedError) -> JSONResponse:
    return JSONResponse(status_code=503, content={"detail": str(exc)})


def create_app(app_settings: Settings | None = None, connector: ClusterConnector | None = None) -> FastAPI:
    """Create the HTTP API application."""
    app_settings = app_settings or settings
    connector = connector or ClusterConnector(app_settings.kubernetes)
    manager = KubernetesManager(connector)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        scheduler = None
        if app_settings.k8s_cleanup_interval_seconds > 0:
            scheduler = CleanupScheduler(
                manager,
                app_settings.k8s_cleanup_interval_seconds,
                app_settings.k8s_cleanup_max_age_ms,
            )
            scheduler.start()
        app.state.cleanup_scheduler = scheduler

        logger.info(
            "API started",
            port=app_settings.api_port,
            kubernetes_enabled=connector.is_enabled(),
            namespace=connector.config.namespace,
        )
        try:
            yield
        finally:
            if scheduler is not None:
                await scheduler.stop()
            logger.info("API stopped")

    app = FastAPI(
        title="Kubernetes Runner API",
        debug=app_settings.api_debug,
        lifespan=lifespan,
    )
    app.state.settings = app_settings
    app.state.kubernetes_manager = manager
    app.add_exception_handler(ClientNotInitializedError, client_not_initialized_handler)

    app.include_router(health.router)
    app.include_router(kubernetes.router)
    return app


def create_terminal_app(
    app_settings: Settings | None = None,
    connector: ClusterConnector | None = None,
    bridge: TerminalBridge | None = None,
) -> FastAPI:
    """Create the terminal bridge application.

    The bridge authenticates on its own, but follows the kubeconfig path of
    the shared connector so configuration updates apply to new sessions.
    """
    app_settings = app_settings or settings
    terminal_config = app_settings.terminal

    if bridge is None:
        connector = connector or ClusterConnector(app_settings.kubernetes)
        bridge = TerminalBridge(
            lambda: resolve_credentials(connector.config.resolved_kubeconfig_path),
            terminal_config,
        )

    app = FastAPI(title="Kubernetes Terminal Bridge", debug=app_settings.api_debug)
    app.state.settings = app_settings
    app.state.terminal_bridge = bridge
    app.add_api_websocket_route(terminal_config.path, terminal.exec_websocket)
    return app


async def run(app_settings: Settings | None = None) -> None:
    """Serve the API and the terminal bridge until interrupted."""
    app_settings = app_settings or settings
    setup_logging(app_settings.log_level, app_settings.log_format)

    if not validate_configuration(app_settings):
        raise SystemExit("Invalid configuration")
    logger.info("Starting with configuration", **get_configuration_summary(app_settings))

    connector = ClusterConnector(app_settings.kubernetes)
    terminal_config = app_settings.terminal

    servers = [
        uvicorn.Server(
            uvicorn.Config(
                create_app(app_settings, connector),
                host=app_settings.api_host,
                port=app_settings.api_port,
                log_config=None,
            )
        ),
        uvicorn.Server(
            uvicorn.Config(
                create_terminal_app(app_settings, connector),
                host=terminal_config.host,
                port=terminal_config.port,
                log_config=None,
            )
        ),
    ]
    logger.info(
        "Terminal bridge listening",
        url=f"ws://{terminal_config.host}:{terminal_config.port}{terminal_config.path}",
    )
    await asyncio.gather(*(server.serve() for server in servers))


def main() -> None:
    asyncio.run(run())


if __name__ == "__main__":
    main()
