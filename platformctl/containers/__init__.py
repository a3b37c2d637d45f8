"""
Container package for platformctl.

This package contains the container descriptors and handles, the docker
runtime adapter and the catalog of built-in platform components.
"""

from platformctl.containers.base import (
    BindMount,
    ContainerKind,
    ContainerRole,
    ContainerSpec,
    ExecResult,
    HealthCheckSpec,
    StartedContainer
)
from platformctl.containers.runtime import DockerRuntime, StartedNetwork

__all__ = [
    'BindMount',
    'ContainerKind',
    'ContainerRole',
    'ContainerSpec',
    'ExecResult',
    'HealthCheckSpec',
    'StartedContainer',
    'DockerRuntime',
    'StartedNetwork'
]
