#!/usr/bin/env python3
"""
Seed data import.

The import tool runs in its own container and reads a descriptor with the
keycloak token endpoint values and the service addresses. Completion is
detected by polling for the runner process inside the container.
"""

import json
import asyncio
import logging
from pathlib import Path
from typing import Dict, Any, Mapping, Optional, Callable, Awaitable

from platformctl.config.settings import get_output_path, load_settings
from platformctl.containers import catalog
from platformctl.containers.base import ContainerKind, StartedContainer
from platformctl.containers.runtime import DockerRuntime, StartedNetwork
from platformctl.core.exceptions import DataImportError
from platformctl.core.images import ImageResolver
from platformctl.utils.logging_setup import LogContext

CONTAINER_INFO_FILE = 'container-info.json'
POLL_INTERVAL = 2.0


class DataImporter:
    """
    Writes the import descriptor and drives the import container.

    Attributes:
        poll_interval (float): Seconds between checks for the runner process.
    """

    def __init__(
        self,
        image_resolver: ImageResolver,
        runtime: DockerRuntime,
        log_context: Optional[LogContext] = None,
        output_path: Optional[Path] = None,
        settings: Optional[Mapping[str, str]] = None,
        poll_interval: float = POLL_INTERVAL,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        self.image_resolver = image_resolver
        self.runtime = runtime
        self.log_context = log_context or LogContext()
        self.output_path = output_path or get_output_path()
        self.settings = settings or load_settings()
        self.poll_interval = poll_interval
        self._sleep = sleep
        self.logger = logging.getLogger('platformctl.importer')

    def build_container_info(self, containers: Mapping[str, StartedContainer]) -> Dict[str, Any]:
        """
        Collect the values the import tool needs.

        Raises:
            DataImportError: If keycloak or the shell UI is missing.
        """
        keycloak = containers.get(catalog.ContainerKey.KEYCLOAK)
        if keycloak is None or keycloak.kind is not ContainerKind.KEYCLOAK:
            raise DataImportError('Keycloak container not found or invalid type in started containers')

        shell_ui = containers.get(catalog.ContainerKey.SHELL_UI)
        if shell_ui is None or shell_ui.kind is not ContainerKind.SHELL_UI:
            raise DataImportError('Shell UI container not found or invalid type in started containers')

        services = {
            key: {'alias': container.name, 'port': container.port}
            for key, container in containers.items()
            if container.kind is ContainerKind.SERVICE
        }
        return {
            'tokenValues': {
                'username': self.settings['keycloak_admin_username'],
                'password': self.settings['keycloak_admin_password'],
                'realm': keycloak.detail('realm'),
                'alias': keycloak.name,
                'port': keycloak.port,
                'clientId': shell_ui.detail('client_user_id'),
            },
            'services': services,
        }

    def create_container_info(self, containers: Mapping[str, StartedContainer]) -> Path:
        """Write the descriptor and return its path."""
        info = self.build_container_info(containers)
        self.output_path.mkdir(parents=True, exist_ok=True)
        path = self.output_path / CONTAINER_INFO_FILE
        path.write_text(json.dumps(info, indent=2))
        self.logger.info(f"Container info written to {path}")
        return path

    def cleanup_container_info(self, path: Path) -> None:
        try:
            path.unlink()
            self.logger.debug(f"Removed {path}")
        except FileNotFoundError:
            pass

    async def import_default_data(
        self,
        network: StartedNetwork,
        containers: Mapping[str, StartedContainer]
    ) -> None:
        """
        Run the import tool and wait for it to finish.

        The descriptor is removed and the import container stopped even if
        the import fails.
        """
        info_path = self.create_container_info(containers)
        importer = None
        try:
            image = await self.image_resolver.get_import_manager_image()
            spec = catalog.import_spec(
                image, info_path, log_output=self.log_context.is_enabled_for(catalog.IMPORT_MANAGER_ALIAS)
            )
            importer = await self.runtime.start(spec, network)
            self.logger.info("Import started, waiting for the import runner to finish")
            await self._wait_for_runner(importer)
            self.logger.info("Data import finished")
        finally:
            self.cleanup_container_info(info_path)
            if importer is not None:
                await importer.stop()

    async def _wait_for_runner(self, importer: StartedContainer) -> None:
        while True:
            await self._sleep(self.poll_interval)
            result = await importer.exec(['pgrep', '-f', catalog.IMPORT_RUNNER])
            if result.exit_code != 0:
                return
            self.logger.debug("Import runner still active")
