#!/usr/bin/env python3
"""
Tests for container specs, handles and the built-in catalog.
"""

import logging
import pytest

from platformctl.containers import catalog
from platformctl.containers.base import (
    ContainerKind,
    ContainerRole,
    HealthCheckSpec,
    ONE_SHOT_STARTUP_TIMEOUT
)
from platformctl.monitoring.metrics import MetricsManager
from conftest import make_container


class TestContainerKind:

    def test_roles(self):
        assert ContainerKind.POSTGRES.role is ContainerRole.CORE
        assert ContainerKind.SHELL_UI.role is ContainerRole.UI
        assert ContainerKind.IMPORT.role is ContainerRole.CUSTOM
        assert ContainerKind.E2E.role is ContainerRole.E2E


class TestHealthCheckSpec:

    def test_from_dict_and_docker_units(self):
        spec = HealthCheckSpec.from_dict({'test': ['CMD', 'true'], 'interval': 2000, 'startPeriod': 500})
        docker_healthcheck = spec.to_docker()

        assert docker_healthcheck['test'] == ['CMD', 'true']
        assert docker_healthcheck['interval'] == 2_000_000_000
        assert docker_healthcheck['timeout'] == 5_000_000_000
        assert docker_healthcheck['start_period'] == 500_000_000

    def test_no_start_period(self):
        assert 'start_period' not in HealthCheckSpec(test=('CMD', 'true')).to_docker()


class TestStartedContainer:
    """Test the StartedContainer handle."""

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, runtime):
        container = make_container('acme-svc', runtime=runtime)

        await container.stop()
        await container.stop()

        runtime.stop_container.assert_awaited_once_with(container.container_id)
        assert container.running is False

    @pytest.mark.asyncio
    async def test_stop_logs_with_container_context(self, runtime, caplog):
        container = make_container('acme-svc', runtime=runtime)

        with caplog.at_level(logging.DEBUG, logger='platformctl.containers'):
            await container.stop()

        assert caplog.records[-1].getMessage() == (
            f"Stopped container {container.container_id[:12]} [container=acme-svc]"
        )

    @pytest.mark.asyncio
    async def test_stop_marks_stopped_even_on_error(self, runtime):
        runtime.stop_container.side_effect = RuntimeError('engine gone')
        container = make_container('acme-svc', runtime=runtime)

        with pytest.raises(RuntimeError):
            await container.stop()
        assert container.running is False

    def test_accessors(self):
        container = make_container(
            'keycloak-app', ContainerKind.KEYCLOAK, mapped_ports={8080: 41000}, details={'realm': 'onecx'}
        )

        assert container.name == 'keycloak-app'
        assert container.get_mapped_port() == 41000
        assert container.get_mapped_port(9000) is None
        assert container.detail('realm') == 'onecx'
        assert container.detail('missing', 'x') == 'x'


class TestCatalog:
    """Test the spec builders of the built-in components."""

    def test_service_urls_and_common_environment(self):
        keycloak = make_container('keycloak-app', ContainerKind.KEYCLOAK, details={'realm': 'acme'})

        assert catalog.service_url(keycloak) == 'http://keycloak-app:8080'
        assert catalog.common_environment(keycloak)['QUARKUS_OIDC_AUTH_SERVER_URL'] == (
            'http://keycloak-app:8080/realms/acme'
        )

    def test_e2e_spec(self, tmp_path):
        spec = catalog.e2e_spec('e2e:1', 'acme-e2e', tmp_path, base_url='http://acme-ui:8080/')

        assert spec.one_shot is True
        assert spec.port is None
        assert spec.startup_timeout == ONE_SHOT_STARTUP_TIMEOUT
        assert spec.environment['BASE_URL'] == 'http://acme-ui:8080/'

    def test_import_spec_mounts_info_read_only(self, tmp_path):
        spec = catalog.import_spec('node:20', tmp_path / 'container-info.json')

        assert spec.kind is ContainerKind.IMPORT
        assert spec.bind_mounts[0].target == '/import/container-info.json'
        assert spec.bind_mounts[0].mode == 'ro'
        assert 'tail -f /dev/null' in spec.command[-1]

    def test_registry_keys_are_unique(self):
        keys = [c.key for c in catalog.CORE_SERVICES + catalog.CORE_BFFS + catalog.CORE_UIS]
        assert len(keys) == len(set(keys))


class TestMetricsManager:
    """Test metric registration and sampling."""

    def test_separate_registries(self):
        first, second = MetricsManager(), MetricsManager()
        first.record_heartbeat_round()

        assert first.sample('heartbeat_rounds_total') == 1.0
        assert second.sample('heartbeat_rounds_total') == 0.0

    def test_custom_metrics(self):
        metrics = MetricsManager(prefix='acme')
        counter = metrics.create_counter('imports', 'Imports run')
        counter.inc(2)

        assert metrics.get_metric('imports') is counter
        assert metrics.sample('imports_total') == 2.0
        assert metrics.get_metric('missing') is None
