#!/usr/bin/env python3
"""
Tests for the seed data import.
"""

import json
import pytest
from unittest.mock import AsyncMock

from platformctl.containers import catalog
from platformctl.containers.base import ContainerKind, ExecResult
from platformctl.core.exceptions import DataImportError, StartupError
from platformctl.core.importer import DataImporter, CONTAINER_INFO_FILE
from conftest import make_container


@pytest.fixture
def importer(image_resolver, runtime, settings, tmp_path):
    return DataImporter(
        image_resolver, runtime, output_path=tmp_path, settings=settings, sleep=AsyncMock()
    )


class TestContainerInfo:
    """Test the descriptor handed to the import tool."""

    def test_shape(self, importer, core_containers):
        info = importer.build_container_info(core_containers)

        assert info['tokenValues'] == {
            'username': 'admin',
            'password': 'secret',
            'realm': 'onecx',
            'alias': 'keycloak-app',
            'port': 8080,
            'clientId': catalog.SHELL_UI_CLIENT_ID,
        }
        assert info['services'] == {
            catalog.ContainerKey.TENANT_SVC: {'alias': 'onecx-tenant-svc', 'port': 8080}
        }

    def test_missing_keycloak(self, importer, core_containers):
        core_containers.pop(catalog.ContainerKey.KEYCLOAK)
        with pytest.raises(DataImportError) as exc_info:
            importer.build_container_info(core_containers)
        assert str(exc_info.value) == 'Keycloak container not found or invalid type in started containers'

    def test_wrong_kind_for_shell_ui(self, importer, core_containers):
        core_containers[catalog.ContainerKey.SHELL_UI] = make_container('onecx-shell-ui', ContainerKind.UI)
        with pytest.raises(DataImportError) as exc_info:
            importer.build_container_info(core_containers)
        assert 'Shell UI container not found' in str(exc_info.value)

    def test_file_written_and_removed(self, importer, core_containers, tmp_path):
        path = importer.create_container_info(core_containers)

        assert path == tmp_path / CONTAINER_INFO_FILE
        assert json.loads(path.read_text())['tokenValues']['realm'] == 'onecx'

        importer.cleanup_container_info(path)
        assert not path.exists()
        importer.cleanup_container_info(path)


class TestImportDefaultData:
    """Test driving the import container."""

    @pytest.mark.asyncio
    async def test_polls_until_runner_exits(self, importer, runtime, network, core_containers, tmp_path):
        runtime.exec = AsyncMock(side_effect=[ExecResult(0), ExecResult(0), ExecResult(1)])

        await importer.import_default_data(network, core_containers)

        assert runtime.exec.await_count == 3
        command = runtime.exec.await_args.args[1]
        assert command == ['pgrep', '-f', catalog.IMPORT_RUNNER]
        assert importer._sleep.await_count == 3

        spec = runtime.start.call_args.args[0]
        assert spec.kind is ContainerKind.IMPORT
        assert spec.name == catalog.IMPORT_MANAGER_ALIAS
        assert spec.bind_mounts[0].mode == 'ro'

        runtime.stop_container.assert_awaited_once()
        assert not (tmp_path / CONTAINER_INFO_FILE).exists()

    @pytest.mark.asyncio
    async def test_cleanup_after_failed_start(self, importer, runtime, network, core_containers, tmp_path):
        runtime.start = AsyncMock(side_effect=StartupError('import-manager', 'exited with code 1'))

        with pytest.raises(StartupError):
            await importer.import_default_data(network, core_containers)

        assert not (tmp_path / CONTAINER_INFO_FILE).exists()
        runtime.stop_container.assert_not_called()

    @pytest.mark.asyncio
    async def test_nothing_started_without_keycloak(self, importer, runtime, network, core_containers):
        core_containers.pop(catalog.ContainerKey.KEYCLOAK)

        with pytest.raises(DataImportError):
            await importer.import_default_data(network, core_containers)

        runtime.start.assert_not_called()
