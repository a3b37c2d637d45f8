#!/usr/bin/env python3
"""
Pytest configuration and fixtures for the platformctl tests.

The docker engine is never touched: a fake runtime hands out real
StartedContainer handles for whatever spec it is asked to start.
"""

import json
import heapq
import asyncio
import itertools
import pytest
from unittest.mock import MagicMock, AsyncMock

from platformctl.config.models import PlatformConfig
from platformctl.containers import catalog
from platformctl.containers.base import (
    ContainerKind,
    ContainerSpec,
    ExecResult,
    StartedContainer
)
from platformctl.containers.runtime import StartedNetwork
from platformctl.core.images import ImagePullChecker, ImageResolver
from platformctl.core.registry import ContainerRegistry


TEST_SETTINGS = {
    'config_path': None,
    'base_url': None,
    'keycloak_admin_username': 'admin',
    'keycloak_admin_password': 'secret',
    'keycloak_realm': 'onecx',
    'output_dir': 'e2e-results',
    'log_level': 'INFO',
}


def make_runtime():
    """Fake DockerRuntime whose start() returns a handle for the given spec."""
    runtime = MagicMock()
    ports = itertools.count(40000)

    async def start(spec, network=None):
        mapped = {spec.port: next(ports)} if spec.port is not None else {}
        exit_code = 0 if spec.one_shot else None
        return StartedContainer(spec, f"id-{spec.name}-0123456789", 'localhost', mapped, runtime, exit_code)

    runtime.start = AsyncMock(side_effect=start)
    runtime.stop_container = AsyncMock()
    runtime.exec = AsyncMock(return_value=ExecResult(exit_code=1))
    runtime.verify_image = AsyncMock()
    runtime.remove_network = AsyncMock()
    runtime.create_network = AsyncMock(
        side_effect=lambda name=None: StartedNetwork(name or 'platformctl-test', 'net-0123456789ab', runtime)
    )
    return runtime


def make_container(
    alias,
    kind=ContainerKind.SERVICE,
    port=8080,
    runtime=None,
    host='localhost',
    mapped_ports=None,
    environment=None,
    health_check=None,
    details=None,
    one_shot=False,
    exit_code=None
):
    """Build a StartedContainer without going through a runtime."""
    spec = ContainerSpec(
        image=f"example/{alias}:latest",
        kind=kind,
        network_aliases=(alias,),
        port=port,
        environment=environment or {},
        health_check=health_check,
        one_shot=one_shot,
        details=details or {}
    )
    if mapped_ports is None:
        mapped_ports = {port: 49153} if port is not None else {}
    return StartedContainer(
        spec, f"id-{alias}-0123456789", host, mapped_ports, runtime or make_runtime(), exit_code
    )


class VirtualClock:
    """
    Replacement for asyncio.sleep driven by advance().

    Sleepers are resolved in deadline order and the loop is given a few
    turns after each wake-up so the woken coroutine reaches its next sleep.
    """

    def __init__(self):
        self.now = 0.0
        self._sleepers = []
        self._seq = itertools.count()

    async def sleep(self, seconds):
        future = asyncio.get_running_loop().create_future()
        heapq.heappush(self._sleepers, (self.now + seconds, next(self._seq), future))
        await future

    async def _settle(self):
        for _ in range(10):
            await asyncio.sleep(0)

    async def advance(self, seconds):
        target = self.now + seconds
        await self._settle()
        while self._sleepers and self._sleepers[0][0] <= target:
            deadline, _, future = heapq.heappop(self._sleepers)
            self.now = deadline
            if not future.done():
                future.set_result(None)
            await self._settle()
        self.now = target


@pytest.fixture
def runtime():
    return make_runtime()


@pytest.fixture
def network(runtime):
    return StartedNetwork('platformctl-test', 'net-0123456789ab', runtime)


@pytest.fixture
def registry():
    return ContainerRegistry()


@pytest.fixture
def settings():
    return dict(TEST_SETTINGS)


@pytest.fixture
def platform_config():
    return PlatformConfig(import_data=False)


@pytest.fixture
def image_resolver(runtime, platform_config):
    return ImageResolver(ImagePullChecker(runtime), platform_config)


@pytest.fixture
def clock():
    return VirtualClock()


@pytest.fixture
def core_containers(runtime):
    """Keycloak and shell UI as the data importer expects them."""
    return {
        catalog.ContainerKey.POSTGRES: make_container(
            catalog.POSTGRES_ALIAS, ContainerKind.POSTGRES, port=5432, runtime=runtime,
            details={'database': 'onecx', 'username': 'onecx', 'password': 'onecx'}
        ),
        catalog.ContainerKey.KEYCLOAK: make_container(
            catalog.KEYCLOAK_ALIAS, ContainerKind.KEYCLOAK, runtime=runtime,
            details={'realm': 'onecx', 'admin_username': 'admin', 'admin_password': 'secret'}
        ),
        catalog.ContainerKey.TENANT_SVC: make_container('onecx-tenant-svc', runtime=runtime),
        catalog.ContainerKey.SHELL_BFF: make_container('onecx-shell-bff', ContainerKind.BFF, runtime=runtime),
        catalog.ContainerKey.SHELL_UI: make_container(
            'onecx-shell-ui', ContainerKind.SHELL_UI, runtime=runtime,
            details={'client_user_id': catalog.SHELL_UI_CLIENT_ID, 'app_base_href': '/onecx-shell/'}
        ),
    }


@pytest.fixture
def config_document():
    """A complete, schema valid integration-tests.json document."""
    return {
        'platformConfig': {
            'importData': False,
            'enableLogging': ['onecx-shell-ui'],
            'heartbeat': {'enabled': True, 'interval': 1000},
            'platformOverrides': {
                'core': {'keycloak': {'image': 'quay.io/keycloak/keycloak:24.0.0'}},
                'services': {'onecx-theme-svc': {'image': 'ghcr.io/onecx/onecx-theme-svc:pr-12'}},
            },
            'container': {
                'service': [{
                    'image': 'ghcr.io/acme/acme-svc:1.0',
                    'networkAlias': 'acme-svc',
                    'environments': {'FEATURE_X': 'on'},
                    'svcDetails': {'databaseUsername': 'acme', 'databasePassword': 'acme'},
                }],
                'bff': [{
                    'image': 'ghcr.io/acme/acme-bff:1.0',
                    'networkAlias': 'acme-bff',
                    'bffDetails': {'permissionsProductName': 'acme'},
                }],
                'ui': [{
                    'image': 'ghcr.io/acme/acme-ui:1.0',
                    'networkAlias': 'acme-ui',
                    'uiDetails': {'appId': 'acme-ui', 'productName': 'acme', 'appBaseHref': '/acme/'},
                    'healthCheck': {'test': ['CMD-SHELL', 'curl -f http://localhost:8080/acme/']},
                }],
                'e2e': {
                    'image': 'ghcr.io/acme/acme-e2e:1.0',
                    'networkAlias': 'acme-e2e',
                },
            },
        }
    }


@pytest.fixture
def config_file(tmp_path, config_document):
    path = tmp_path / 'integration-tests.json'
    path.write_text(json.dumps(config_document))
    return path
