#!/usr/bin/env python3
"""
Docker engine adapter.

All calls into the docker SDK block, so they are run in the loop's default
executor. The orchestration itself stays on a single asyncio loop.
"""

import os
import time
import uuid
import asyncio
import logging
import functools
import threading
from urllib.parse import urlparse
from typing import Dict, Any, Optional, Callable

import docker
from docker.errors import DockerException, ImageNotFound, NotFound, APIError

from platformctl.containers.base import ContainerSpec, StartedContainer, ExecResult
from platformctl.core.exceptions import StartupError, ImageVerificationError
from platformctl.utils.logging_setup import LogContext

READINESS_POLL_INTERVAL = 0.5
STOP_TIMEOUT = 10


class StartedNetwork:
    """A user defined bridge network shared by all platform containers."""

    def __init__(self, name: str, network_id: str, runtime: 'DockerRuntime'):
        self.name = name
        self.id = network_id
        self._runtime = runtime

    async def stop(self) -> None:
        await self._runtime.remove_network(self.id)

    def __repr__(self) -> str:
        return f"<StartedNetwork {self.name} id={self.id[:12]}>"


class DockerRuntime:
    """
    Starts, stops and inspects containers through the docker SDK.

    Attributes:
        log_context (LogContext): Where streamed container output goes.
    """

    def __init__(
        self,
        client: Optional[docker.DockerClient] = None,
        log_context: Optional[LogContext] = None
    ):
        self._client = client
        self.log_context = log_context or LogContext()
        self.logger = logging.getLogger('platformctl.runtime')

    @property
    def client(self) -> docker.DockerClient:
        if self._client is None:
            self._client = docker.from_env()
        return self._client

    @property
    def host(self) -> str:
        """Host on which published ports are reachable."""
        docker_host = os.environ.get('DOCKER_HOST', '')
        if docker_host.startswith('tcp://'):
            return urlparse(docker_host).hostname or 'localhost'
        return 'localhost'

    async def _call(self, func: Callable, *args, **kwargs) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))

    async def create_network(self, name: Optional[str] = None) -> StartedNetwork:
        name = name or f"platformctl-{uuid.uuid4().hex[:12]}"
        network = await self._call(self.client.networks.create, name, driver='bridge')
        self.logger.info(f"Created network {name}")
        return StartedNetwork(name, network.id, self)

    async def remove_network(self, network_id: str) -> None:
        try:
            network = await self._call(self.client.networks.get, network_id)
            await self._call(network.remove)
        except NotFound:
            self.logger.debug(f"Network {network_id[:12]} already removed")

    async def ensure_image(self, image: str) -> None:
        try:
            await self._call(self.client.images.get, image)
        except ImageNotFound:
            self.logger.info(f"Pulling image {image}")
            await self._call(self.client.images.pull, image)

    def _create_kwargs(self, spec: ContainerSpec, network: Optional[StartedNetwork]) -> Dict[str, Any]:
        kwargs = {
            'detach': True,
            'environment': dict(spec.environment),
            'labels': {'platformctl.kind': spec.kind.value, 'platformctl.name': spec.name},
        }
        if spec.port is not None:
            kwargs['ports'] = {f"{spec.port}/tcp": None}
        if spec.health_check is not None:
            kwargs['healthcheck'] = spec.health_check.to_docker()
        if spec.command is not None:
            kwargs['command'] = list(spec.command)
        if spec.bind_mounts:
            kwargs['volumes'] = {
                mount.source: {'bind': mount.target, 'mode': mount.mode}
                for mount in spec.bind_mounts
            }
        if network is not None:
            kwargs['network'] = network.name
            kwargs['networking_config'] = {
                network.name: self.client.api.create_endpoint_config(aliases=list(spec.network_aliases))
            }
        return kwargs

    async def start(self, spec: ContainerSpec, network: Optional[StartedNetwork] = None) -> StartedContainer:
        """
        Start a container and wait for its wait condition.

        Long running containers are ready once they run, report healthy (if
        a health check is declared) and accept connections on their port.
        One-shot containers are ready once their process has exited.

        Args:
            spec: What to start.
            network: Network to join under the spec's aliases.

        Returns:
            StartedContainer: Handle to the started container.

        Raises:
            StartupError: If the container fails or misses its deadline.
        """
        try:
            await self.ensure_image(spec.image)
            container = await self._call(
                self.client.containers.create, spec.image, **self._create_kwargs(spec, network)
            )
            await self._call(container.start)
        except DockerException as e:
            raise StartupError(spec.name, str(e)) from e

        self.logger.info(f"Started container {spec.name} from {spec.image}")
        if spec.log_output:
            self._follow_logs(container, spec.name)

        started = time.monotonic()
        try:
            if spec.one_shot:
                exit_code = await asyncio.wait_for(self._wait_for_exit(container), spec.startup_timeout)
                return StartedContainer(spec, container.id, self.host, {}, self, exit_code=exit_code)

            mapped_ports = await asyncio.wait_for(
                self._wait_until_ready(container, spec), spec.startup_timeout
            )
        except asyncio.TimeoutError:
            await self._discard(container)
            raise StartupError(spec.name, f"not ready after {spec.startup_timeout:.0f}s")
        except StartupError:
            await self._discard(container)
            raise

        self.logger.debug(f"{spec.name} ready after {time.monotonic() - started:.1f}s")
        return StartedContainer(spec, container.id, self.host, mapped_ports, self)

    async def _wait_for_exit(self, container) -> int:
        result = await self._call(container.wait)
        return int(result.get('StatusCode', 1))

    async def _wait_until_ready(self, container, spec: ContainerSpec) -> Dict[int, int]:
        while True:
            await self._call(container.reload)
            state = container.attrs.get('State', {})
            status = state.get('Status')
            if status in ('exited', 'dead'):
                raise StartupError(spec.name, f"exited with code {state.get('ExitCode')}")

            health = state.get('Health', {}).get('Status')
            if spec.health_check is not None and health == 'unhealthy':
                raise StartupError(spec.name, "health check reported unhealthy")

            healthy = spec.health_check is None or health == 'healthy'
            if status == 'running' and healthy:
                mapped_ports = self._mapped_ports(container)
                if spec.port is None:
                    return mapped_ports
                host_port = mapped_ports.get(spec.port)
                if host_port is not None and await self._port_open(self.host, host_port):
                    return mapped_ports

            await asyncio.sleep(READINESS_POLL_INTERVAL)

    @staticmethod
    def _mapped_ports(container) -> Dict[int, int]:
        ports = container.attrs.get('NetworkSettings', {}).get('Ports') or {}
        mapped = {}
        for container_port, bindings in ports.items():
            if not bindings:
                continue
            mapped[int(container_port.split('/')[0])] = int(bindings[0]['HostPort'])
        return mapped

    @staticmethod
    async def _port_open(host: str, port: int) -> bool:
        try:
            _, writer = await asyncio.wait_for(asyncio.open_connection(host, port), 1.0)
        except (OSError, asyncio.TimeoutError):
            return False
        writer.close()
        return True

    def _follow_logs(self, container, alias: str) -> None:
        logger = self.log_context.for_container(alias)

        def pump():
            try:
                for chunk in container.logs(stream=True, follow=True):
                    for line in chunk.decode('utf-8', errors='replace').splitlines():
                        logger.info(line)
            except DockerException as e:
                logger.debug(f"Log stream closed: {e}")
            logger.info("Stream closed")

        threading.Thread(target=pump, name=f"logs-{alias}", daemon=True).start()

    async def _discard(self, container) -> None:
        try:
            await self._call(container.remove, force=True, v=True)
        except DockerException as e:
            self.logger.warning(f"Could not remove failed container {container.id[:12]}: {e}")

    async def stop_container(self, container_id: str) -> None:
        """Stop and remove a container; one that no longer exists is ignored."""
        try:
            container = await self._call(self.client.containers.get, container_id)
            await self._call(container.stop, timeout=STOP_TIMEOUT)
            await self._call(container.remove, force=True, v=True)
        except NotFound:
            self.logger.debug(f"Container {container_id[:12]} already gone")

    async def exec(self, container_id: str, command) -> ExecResult:
        container = await self._call(self.client.containers.get, container_id)
        exit_code, output = await self._call(container.exec_run, list(command))
        if isinstance(output, bytes):
            output = output.decode('utf-8', errors='replace')
        return ExecResult(exit_code=exit_code if exit_code is not None else 1, output=output or '')

    async def verify_image(self, image: str) -> None:
        """
        Pull an image and start it briefly to prove it is usable.

        Raises:
            ImageVerificationError: If pulling or starting the image fails.
        """
        try:
            await self.ensure_image(image)
            container = await self._call(self.client.containers.create, image, detach=True)
        except DockerException as e:
            raise ImageVerificationError(image, str(e)) from e

        try:
            await self._call(container.start)
        except DockerException as e:
            raise ImageVerificationError(image, str(e)) from e
        finally:
            try:
                await self._call(container.remove, force=True, v=True)
            except APIError as e:
                self.logger.debug(f"Cleanup of probe container for {image} failed: {e}")
