#!/usr/bin/env python3
"""
Container descriptors and started container handles.

A ContainerSpec is the immutable description of what to run. Passing it to
DockerRuntime.start() yields a StartedContainer, which tracks the running
instance until it is stopped.
"""

import enum
from dataclasses import dataclass, field
from typing import Dict, Any, Optional, Tuple, Mapping, TYPE_CHECKING

from platformctl.core.health import (
    DEFAULT_HEALTH_CHECK_TIMEOUT_MS,
    HealthCheckExecutor,
    HttpHealthCheckExecutor,
    SkipHealthCheckExecutor,
    build_health_check_url
)
from platformctl.utils.logging_setup import get_contextual_logger

if TYPE_CHECKING:
    from platformctl.containers.runtime import DockerRuntime

# Default startup deadlines in seconds
DEFAULT_STARTUP_TIMEOUT = 120.0
ONE_SHOT_STARTUP_TIMEOUT = 600.0


class ContainerRole(enum.Enum):
    CORE = 'core'
    SERVICE = 'service'
    BFF = 'bff'
    UI = 'ui'
    CUSTOM = 'custom'
    E2E = 'e2e'


class ContainerKind(enum.Enum):
    """Closed set of container kinds the platform knows how to start."""
    POSTGRES = 'postgres'
    KEYCLOAK = 'keycloak'
    SERVICE = 'service'
    BFF = 'bff'
    UI = 'ui'
    SHELL_UI = 'shell-ui'
    E2E = 'e2e'
    IMPORT = 'import'

    @property
    def role(self) -> ContainerRole:
        return _KIND_ROLES[self]


_KIND_ROLES = {
    ContainerKind.POSTGRES: ContainerRole.CORE,
    ContainerKind.KEYCLOAK: ContainerRole.CORE,
    ContainerKind.SERVICE: ContainerRole.SERVICE,
    ContainerKind.BFF: ContainerRole.BFF,
    ContainerKind.UI: ContainerRole.UI,
    ContainerKind.SHELL_UI: ContainerRole.UI,
    ContainerKind.E2E: ContainerRole.E2E,
    ContainerKind.IMPORT: ContainerRole.CUSTOM,
}


@dataclass(frozen=True)
class HealthCheckSpec:
    """Docker style health check. Durations are in milliseconds."""
    test: Tuple[str, ...]
    interval: int = 10_000
    timeout: int = 5_000
    retries: int = 3
    start_period: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'HealthCheckSpec':
        return cls(
            test=tuple(data['test']),
            interval=data.get('interval', 10_000),
            timeout=data.get('timeout', 5_000),
            retries=data.get('retries', 3),
            start_period=data.get('startPeriod')
        )

    def to_docker(self) -> Dict[str, Any]:
        """Docker API representation (durations in nanoseconds)."""
        healthcheck = {
            'test': list(self.test),
            'interval': self.interval * 1_000_000,
            'timeout': self.timeout * 1_000_000,
            'retries': self.retries,
        }
        if self.start_period is not None:
            healthcheck['start_period'] = self.start_period * 1_000_000
        return healthcheck


@dataclass(frozen=True)
class BindMount:
    source: str
    target: str
    mode: str = 'rw'


@dataclass(frozen=True)
class ContainerSpec:
    """
    Immutable description of a container to start.

    Attributes:
        image: Image reference.
        kind: What the container is; determines its role.
        network_aliases: Names on the shared network, the first is the primary name.
        port: Internal port that is published to the host.
        environment: Environment variables.
        health_check: Optional docker health check.
        bind_mounts: Host directories mounted into the container.
        command: Optional command override.
        one_shot: Wait for the process to exit instead of for readiness.
        startup_timeout: Seconds to wait for the wait condition.
        log_output: Stream stdout/stderr lines into the log.
        details: Role specific values such as realm or product name.
    """
    image: str
    kind: ContainerKind
    network_aliases: Tuple[str, ...]
    port: Optional[int] = 8080
    environment: Mapping[str, str] = field(default_factory=dict)
    health_check: Optional[HealthCheckSpec] = None
    bind_mounts: Tuple[BindMount, ...] = ()
    command: Optional[Tuple[str, ...]] = None
    one_shot: bool = False
    startup_timeout: float = DEFAULT_STARTUP_TIMEOUT
    log_output: bool = False
    details: Mapping[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.network_aliases[0]

    @property
    def role(self) -> ContainerRole:
        return self.kind.role


@dataclass(frozen=True)
class ExecResult:
    exit_code: int
    output: str = ''


class StartedContainer:
    """
    Handle to a running container.

    Handles are created by DockerRuntime.start() and discarded after
    stop(); a stopped handle is never started again.
    """

    def __init__(
        self,
        spec: ContainerSpec,
        container_id: str,
        host: str,
        mapped_ports: Dict[int, int],
        runtime: 'DockerRuntime',
        exit_code: Optional[int] = None
    ):
        self.spec = spec
        self.container_id = container_id
        self.host = host
        self.mapped_ports = dict(mapped_ports)
        self._runtime = runtime
        self._exit_code = exit_code
        self._stopped = False
        self._health_check_executor = None  # type: Optional[HealthCheckExecutor]
        self.logger = get_contextual_logger('platformctl.containers', container=spec.name)

    @property
    def kind(self) -> ContainerKind:
        return self.spec.kind

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def network_aliases(self) -> Tuple[str, ...]:
        return self.spec.network_aliases

    @property
    def port(self) -> Optional[int]:
        return self.spec.port

    @property
    def environment(self) -> Dict[str, str]:
        return dict(self.spec.environment)

    @property
    def running(self) -> bool:
        return not self._stopped and not self.spec.one_shot

    def get_mapped_port(self, port: Optional[int] = None) -> Optional[int]:
        return self.mapped_ports.get(port if port is not None else self.spec.port)

    def detail(self, key: str, default: Any = None) -> Any:
        return self.spec.details.get(key, default)

    def get_exit_code(self) -> Optional[int]:
        return self._exit_code

    def get_health_check_executor(self) -> HealthCheckExecutor:
        """Build the executor on first use and reuse it afterwards."""
        if self._health_check_executor is None:
            self._health_check_executor = self._create_health_check_executor()
        return self._health_check_executor

    def _create_health_check_executor(self) -> HealthCheckExecutor:
        if self.spec.one_shot:
            return SkipHealthCheckExecutor(f"{self.name} is a one-shot container")
        if self.spec.health_check is None:
            return SkipHealthCheckExecutor(f"{self.name} declares no health check")

        url = build_health_check_url(self.host, self.get_mapped_port(), self.spec.health_check.test)
        if url is None:
            return SkipHealthCheckExecutor(f"no probe URL in health check of {self.name}")
        timeout_ms = self.spec.health_check.timeout or DEFAULT_HEALTH_CHECK_TIMEOUT_MS
        return HttpHealthCheckExecutor(url, timeout_ms)

    async def exec(self, command) -> ExecResult:
        return await self._runtime.exec(self.container_id, list(command))

    async def stop(self) -> None:
        """Stop and remove the container. Calling it again does nothing."""
        if self._stopped:
            return
        try:
            await self._runtime.stop_container(self.container_id)
        finally:
            self._stopped = True
        self.logger.debug(f"Stopped container {self.container_id[:12]}")

    def __repr__(self) -> str:
        return f"<StartedContainer {self.kind.value}:{self.name} id={self.container_id[:12]}>"
