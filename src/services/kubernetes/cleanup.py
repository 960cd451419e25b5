"""Garbage collection of finished managed pods.

Only pods carrying ``managed-by=opencode-manager`` are considered, and only
those that completed successfully and are older than the age limit are
deleted. Running, pending and failed pods are left alone regardless of
age so failures stay inspectable.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from ...config.kubernetes import DEFAULT_CLEANUP_MAX_AGE_MS, MANAGED_BY, MANAGED_SELECTOR
from .models import PodPhase, PodStatus

if TYPE_CHECKING:
    from ..interfaces import ResourceManagerInterface

logger = structlog.get_logger(__name__)


def is_reclaimable(pod: PodStatus, max_age_ms: int) -> bool:
    """Whether cleanup may delete this pod.

    The ownership label is checked again here so a pod lacking it is never
    deleted, even if the server ignored the label selector.
    """
    if pod.labels.get("managed-by") != MANAGED_BY:
        return False
    return pod.phase is PodPhase.SUCCEEDED and pod.age_ms > max_age_ms


async def cleanup_old_pods(
    manager: ResourceManagerInterface,
    namespace: str,
    max_age_ms: int = DEFAULT_CLEANUP_MAX_AGE_MS,
) -> int:
    """Delete succeeded managed pods older than ``max_age_ms``.

    Args:
        manager: Resource manager to list and delete through
        namespace: Namespace to clean
        max_age_ms: Minimum age (exclusive) in milliseconds

    Returns:
        Number of pods actually deleted. Pods whose deletion fails are
        skipped and not counted.
    """
    pods = await manager.list_pods(namespace, MANAGED_SELECTOR)

    deleted = 0
    for pod in pods:
        if not is_reclaimable(pod, max_age_ms):
            continue
        if await manager.delete_pod(pod.name, pod.namespace or namespace):
            deleted += 1

    if deleted > 0:
        logger.info("Cleaned up old pods", namespace=namespace, deleted=deleted)

    return deleted


class CleanupScheduler:
    """Runs :func:`cleanup_old_pods` periodically in the background.

    A cycle is skipped while the integration is disabled. A failing cycle
    is logged and the loop carries on.
    """

    def __init__(
        self,
        manager: ResourceManagerInterface,
        interval_seconds: float,
        max_age_ms: int = DEFAULT_CLEANUP_MAX_AGE_MS,
    ):
        self._manager = manager
        self._interval = interval_seconds
        self._max_age_ms = max_age_ms
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> int:
        if not self._manager.is_enabled():
            return 0
        namespace = self._manager.get_config().target_namespace()
        return await cleanup_old_pods(self._manager, namespace, self._max_age_ms)

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.run_once()
            except Exception as e:
                logger.error("Periodic pod cleanup failed", error=str(e))

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())
        logger.info(
            "Pod cleanup scheduler started",
            interval_seconds=self._interval,
            max_age_ms=self._max_age_ms,
        )

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Pod cleanup scheduler stopped")
