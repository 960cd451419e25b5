"""One-shot command execution inside a running pod.

Output is exposed as an ordered async sequence of :class:`ExecChunk` items
terminated by one :class:`ExecExit`. The exit code comes from the exec
status channel, never from stream EOF.
"""

import asyncio
import json
import threading
from collections.abc import AsyncIterator, Callable
from typing import Any

import structlog
from kubernetes.client import ApiClient, CoreV1Api
from kubernetes.stream import stream as k8s_stream
from kubernetes.stream.ws_client import ERROR_CHANNEL

from ...models.errors import ExecError
from .client import ClusterConnection, ClusterConnector, describe_api_error
from .models import ExecChunk, ExecExit, ExecResult, ExecStream

logger = structlog.get_logger(__name__)

StreamFactory = Callable[..., Any]
ExecApiFactory = Callable[[ClusterConnection], CoreV1Api]

ExecItem = ExecChunk | ExecExit


def parse_exec_status(raw: str | None) -> int:
    """Turn the exec status channel payload into an exit code.

    ``Success`` maps to 0; a ``Failure`` carrying an ``ExitCode`` cause maps
    to that code; any other failure (e.g. executable not found) maps to 1.

    Raises:
        ExecError: If no status was received or it is not valid JSON.
    """
    if not raw:
        raise ExecError("Exec stream closed without a status")
    try:
        status = json.loads(raw)
    except ValueError as e:
        raise ExecError(f"Malformed exec status: {raw!r}") from e

    if status.get("status") == "Success":
        return 0

    causes = (status.get("details") or {}).get("causes") or []
    for cause in causes:
        if cause.get("reason") == "ExitCode":
            try:
                return int(cause.get("message"))
            except (TypeError, ValueError):
                break

    logger.warning("Exec finished without an exit code", message=status.get("message"))
    return 1


def dedicated_core_api(connection: ClusterConnection) -> CoreV1Api:
    """Build a CoreV1Api on its own ApiClient for one exec.

    ``kubernetes.stream.stream`` swaps ``call_api`` on the client it is handed
    for the duration of the call, so exec never runs on the shared client.
    """
    return CoreV1Api(ApiClient(connection.api_client.configuration))


class PodExecutor:
    """Runs commands in pods over the exec subresource."""

    def __init__(
        self,
        connector: ClusterConnector,
        stream_factory: StreamFactory = k8s_stream,
        poll_interval: float = 1.0,
        api_factory: ExecApiFactory = dedicated_core_api,
    ):
        self._connector = connector
        self._stream_factory = stream_factory
        self._api_factory = api_factory
        self._poll_interval = poll_interval

    def _open(self, core_api, name: str, namespace: str, command: list[str], container: str | None):
        return self._stream_factory(
            core_api.connect_get_namespaced_pod_exec,
            name,
            namespace,
            command=command,
            container=container,
            stderr=True,
            stdin=False,
            stdout=True,
            tty=False,
            _preload_content=False,
        )

    @staticmethod
    def _drain(resp, emit: Callable[[ExecItem], None]) -> None:
        if resp.peek_stdout():
            emit(ExecChunk(ExecStream.STDOUT, resp.read_stdout()))
        if resp.peek_stderr():
            emit(ExecChunk(ExecStream.STDERR, resp.read_stderr()))

    def _pump(
        self,
        connection: ClusterConnection,
        name: str,
        namespace: str,
        command: list[str],
        container: str | None,
        emit: Callable[[ExecItem], None],
        stop: threading.Event,
    ) -> int:
        core_api = self._api_factory(connection)
        try:
            resp = self._open(core_api, name, namespace, command, container)
            try:
                while resp.is_open() and not stop.is_set():
                    resp.update(timeout=self._poll_interval)
                    self._drain(resp, emit)
                self._drain(resp, emit)
                status = resp.read_channel(ERROR_CHANNEL)
            finally:
                resp.close()
        finally:
            core_api.api_client.close()
        return parse_exec_status(status)

    async def stream(
        self,
        name: str,
        namespace: str,
        command: list[str],
        container: str | None = None,
    ) -> AsyncIterator[ExecItem]:
        """Run a command and yield its output as it arrives.

        Ordering is preserved within stdout and within stderr, not between
        them. The last item is always an :class:`ExecExit`.

        Raises:
            ClientNotInitializedError: If the integration is disabled.
            ExecError: If the stream ends without a status.
            ApiException: If the pod or container cannot be reached.
        """
        connection = self._connector.require_connection()
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue[ExecItem | Exception] = asyncio.Queue()
        stop = threading.Event()

        def emit(item: ExecItem | Exception) -> None:
            loop.call_soon_threadsafe(queue.put_nowait, item)

        def run() -> None:
            try:
                exit_code = self._pump(connection, name, namespace, command, container, emit, stop)
            except Exception as e:
                emit(e)
            else:
                emit(ExecExit(exit_code))

        logger.debug("Starting exec", pod=name, namespace=namespace, command=command)
        worker = loop.run_in_executor(None, run)
        try:
            while True:
                item = await queue.get()
                if isinstance(item, Exception):
                    logger.error(
                        "Failed to exec in pod",
                        pod=name,
                        namespace=namespace,
                        error=describe_api_error(item),
                    )
                    raise item
                yield item
                if isinstance(item, ExecExit):
                    break
        finally:
            stop.set()
            await worker

    async def run(
        self,
        name: str,
        namespace: str,
        command: list[str],
        container: str | None = None,
    ) -> ExecResult:
        """Run a command and collect its output."""
        stdout: list[str] = []
        stderr: list[str] = []
        async for item in self.stream(name, namespace, command, container):
            if isinstance(item, ExecExit):
                return ExecResult(stdout="".join(stdout), stderr="".join(stderr), exit_code=item.exit_code)
            if item.stream is ExecStream.STDOUT:
                stdout.append(item.data)
            else:
                stderr.append(item.data)
        raise ExecError("Exec stream ended without an exit status")
