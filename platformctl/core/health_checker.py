#!/usr/bin/env python3
"""
Health checks over the registry and the heartbeat loop.

The heartbeat is the only background task of the platform. It re-checks a
snapshot of the started containers on a fixed interval until stopped.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Any, List, Mapping, Optional, Callable, Awaitable

from platformctl.config.models import HeartbeatConfig
from platformctl.containers.base import StartedContainer
from platformctl.core.exceptions import ContainerNotFoundError
from platformctl.monitoring.metrics import MetricsManager


@dataclass(frozen=True)
class ContainerHealthStatus:
    name: str
    healthy: bool


class HealthChecker:
    """
    Checks container health on demand and on a heartbeat.

    Consecutive failures are counted per container while the heartbeat
    runs. Reaching the configured failure threshold logs an error once per
    failure streak; a healthy result resets the count.

    Attributes:
        metrics (Optional[MetricsManager]): Receives per container health.
    """

    def __init__(
        self,
        metrics: Optional[MetricsManager] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        self.metrics = metrics
        self._sleep = sleep
        self._heartbeat_config = HeartbeatConfig()
        self._heartbeat_task = None  # type: Optional[asyncio.Task]
        self._failure_counts = {}  # type: Dict[str, int]
        self.logger = logging.getLogger('platformctl.health')

    async def check_healthy(
        self,
        containers: Mapping[str, StartedContainer],
        name: str
    ) -> ContainerHealthStatus:
        """
        Check one container.

        Raises:
            ContainerNotFoundError: If ``name`` is not among ``containers``.
        """
        container = containers.get(name)
        if container is None:
            raise ContainerNotFoundError(name)

        try:
            result = await container.get_health_check_executor().execute_health_check()
            healthy = result.success
            if not healthy:
                self.logger.warning(f"{name} is unhealthy: {result.message}")
        except Exception as e:
            self.logger.error(f"Health check of {name} raised {e!r}")
            healthy = False

        return ContainerHealthStatus(name=name, healthy=healthy)

    async def check_all_healthy(self, containers: Mapping[str, StartedContainer]) -> List[ContainerHealthStatus]:
        """Check every container; results keep the mapping's order."""
        names = list(containers.keys())
        return list(await asyncio.gather(*(self.check_healthy(containers, name) for name in names)))

    def configure_heartbeat(self, config: Optional[Any] = None) -> None:
        """
        Set heartbeat options.

        Args:
            config: A HeartbeatConfig, or a partial mapping whose fields are
                merged over the defaults.
        """
        if isinstance(config, HeartbeatConfig):
            self._heartbeat_config = config
        else:
            self._heartbeat_config = HeartbeatConfig().merged(config)
        self.logger.debug(f"Heartbeat configured: {self._heartbeat_config}")

    def get_heartbeat_config(self) -> HeartbeatConfig:
        return self._heartbeat_config

    def start_heartbeat(self, containers: Mapping[str, StartedContainer]) -> None:
        """Start the heartbeat over a snapshot of ``containers`` if enabled."""
        if not self._heartbeat_config.enabled:
            self.logger.debug("Heartbeat disabled")
            return
        if self.is_heartbeat_running():
            self.logger.debug("Heartbeat already running")
            return

        snapshot = dict(containers)
        self._failure_counts = {}
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop(snapshot))
        self.logger.info(
            f"Heartbeat started for {len(snapshot)} containers "
            f"every {self._heartbeat_config.interval} ms"
        )

    def stop_heartbeat(self) -> None:
        if self._heartbeat_task is None:
            return
        self._heartbeat_task.cancel()
        self._heartbeat_task = None
        self.logger.info("Heartbeat stopped")

    def is_heartbeat_running(self) -> bool:
        return self._heartbeat_task is not None and not self._heartbeat_task.done()

    async def _heartbeat_loop(self, containers: Mapping[str, StartedContainer]) -> None:
        interval = self._heartbeat_config.interval / 1000
        while True:
            await self._sleep(interval)
            try:
                statuses = await self.check_all_healthy(containers)
            except Exception as e:
                self.logger.error(f"Heartbeat round failed: {e!r}")
                continue
            self._record_round(statuses)

    def _record_round(self, statuses: List[ContainerHealthStatus]) -> None:
        threshold = self._heartbeat_config.failure_threshold
        unhealthy = []
        for status in statuses:
            if self.metrics is not None:
                self.metrics.record_health(status.name, status.healthy)

            if status.healthy:
                self._failure_counts[status.name] = 0
                continue

            unhealthy.append(status.name)
            count = self._failure_counts.get(status.name, 0) + 1
            self._failure_counts[status.name] = count
            if count == threshold:
                self.logger.error(f"{status.name} failed {count} consecutive health checks")
                if self.metrics is not None:
                    self.metrics.record_threshold_breach(status.name)

        if self.metrics is not None:
            self.metrics.record_heartbeat_round()
        if unhealthy:
            self.logger.warning(f"Heartbeat: unhealthy containers: {', '.join(unhealthy)}")
        else:
            self.logger.debug(f"Heartbeat: all {len(statuses)} containers healthy")

    def get_failure_counts(self) -> Dict[str, int]:
        return dict(self._failure_counts)
