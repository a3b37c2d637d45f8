#!/usr/bin/env python3
"""
Tests for the platform info export.
"""

import json
import logging
import pytest

from platformctl.containers import catalog
from platformctl.containers.base import ContainerKind
from platformctl.core.exporter import PlatformInfoExporter, PLATFORM_INFO_FILE
from conftest import make_container


@pytest.fixture
def exporter(registry, network, tmp_path):
    registry.add_container(
        catalog.ContainerKey.KEYCLOAK,
        make_container('keycloak-app', ContainerKind.KEYCLOAK, mapped_ports={8080: 41000})
    )
    registry.add_container(
        catalog.ContainerKey.SHELL_UI,
        make_container(
            'onecx-shell-ui', ContainerKind.SHELL_UI, host='172.17.0.1', mapped_ports={8080: 41001},
            environment={'PRODUCT_NAME': 'onecx-shell', 'APP_ID': 'onecx-shell-ui'}
        )
    )
    registry.add_container(
        'acme-e2e',
        make_container('acme-e2e', ContainerKind.E2E, port=None, one_shot=True, exit_code=0)
    )
    return PlatformInfoExporter(registry, network, tmp_path)


class TestPlatformInfoExporter:
    """Test the PlatformInfoExporter class functionality."""

    def test_normalize_host(self):
        assert PlatformInfoExporter.normalize_host('172.17.0.1') == 'localhost'
        assert PlatformInfoExporter.normalize_host('172.18.0.5') == 'localhost'
        assert PlatformInfoExporter.normalize_host('10.0.0.7') == '10.0.0.7'

    def test_container_record(self, exporter):
        info = exporter.get_container_info(catalog.ContainerKey.SHELL_UI)

        assert info == {
            'name': 'onecx-shell-ui',
            'kind': 'shell-ui',
            'host': 'localhost',
            'port': 41001,
            'internalPort': 8080,
            'internalUrl': 'http://onecx-shell-ui:8080',
            'externalUrl': 'http://localhost:41001',
            'running': True,
            'environment': {'APP_ID': 'onecx-shell-ui', 'PRODUCT_NAME': 'onecx-shell'},
        }
        assert list(info['environment']) == ['APP_ID', 'PRODUCT_NAME']
        assert exporter.get_container_info('missing') is None

    def test_e2e_containers_are_skipped(self, exporter):
        containers = exporter.get_all_container_infos()
        assert list(containers) == [catalog.ContainerKey.KEYCLOAK, catalog.ContainerKey.SHELL_UI]

    def test_platform_info(self, exporter):
        info = exporter.get_platform_info()

        assert info['network'] == {'name': 'platformctl-test', 'id': 'net-0123456789ab'}
        assert info['e2e'] == {
            'baseUrl': 'http://onecx-shell-ui:8080',
            'keycloakUrl': 'http://keycloak-app:8080',
        }
        assert info['external']['shellUi'] == 'http://localhost:41001'
        assert info['external']['keycloak'] == 'http://localhost:41000'
        assert info['external']['shellBff'] == ''

    def test_export_to_file(self, exporter, tmp_path):
        path = exporter.export_to_file()

        assert path == tmp_path / PLATFORM_INFO_FILE
        assert json.loads(path.read_text())['network']['name'] == 'platformctl-test'

    def test_ci_outputs(self, exporter, tmp_path, monkeypatch):
        output_file = tmp_path / 'github_output'
        monkeypatch.setenv('GITHUB_OUTPUT', str(output_file))

        assert exporter.write_ci_outputs(tmp_path / PLATFORM_INFO_FILE) is True

        lines = output_file.read_text().splitlines()
        assert 'platform_network=platformctl-test' in lines
        assert 'shell_ui_url=http://localhost:41001' in lines
        assert f"platform_info_file={tmp_path / PLATFORM_INFO_FILE}" in lines

    def test_no_ci_outputs_outside_pipeline(self, exporter, monkeypatch):
        monkeypatch.delenv('GITHUB_OUTPUT', raising=False)
        assert exporter.write_ci_outputs() is False

    def test_export_all(self, exporter, tmp_path, monkeypatch):
        monkeypatch.delenv('GITHUB_OUTPUT', raising=False)
        info = exporter.export_all()

        assert (tmp_path / PLATFORM_INFO_FILE).exists()
        assert set(info) == {'network', 'e2e', 'external', 'containers'}

    def test_export_all_dumps_environment_at_debug(self, exporter, monkeypatch, caplog):
        monkeypatch.delenv('GITHUB_OUTPUT', raising=False)
        with caplog.at_level(logging.DEBUG, logger='platformctl.exporter'):
            exporter.export_all()

        messages = [r.getMessage() for r in caplog.records]
        assert f"Environment variables for {catalog.ContainerKey.SHELL_UI}:" in messages
        assert '  PRODUCT_NAME=onecx-shell' in messages
        dumped = [r for r in caplog.records if r.getMessage().startswith('Environment variables for')]
        assert {r.levelno for r in dumped} == {logging.DEBUG}

    def test_export_all_skips_environment_at_info(self, exporter, monkeypatch, caplog):
        monkeypatch.delenv('GITHUB_OUTPUT', raising=False)
        with caplog.at_level(logging.INFO, logger='platformctl.exporter'):
            exporter.export_all()

        assert 'Environment variables for' not in caplog.text
        assert 'Platform Ready!' in caplog.text

    def test_environment_of_unknown_container(self, exporter, caplog):
        with caplog.at_level(logging.DEBUG, logger='platformctl.exporter'):
            exporter.log_container_environment('missing')

        assert caplog.records[-1].levelno == logging.WARNING
        assert caplog.records[-1].getMessage() == 'Container missing not found in registry'
