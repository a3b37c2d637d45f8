#!/usr/bin/env python3
"""
Startup of user declared containers and the end-to-end test runner.
"""

import time
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Mapping

from platformctl.config.models import (
    PlatformConfig,
    SvcContainerConfig,
    BffContainerConfig,
    UiContainerConfig,
    E2eContainerConfig
)
from platformctl.config.settings import get_output_path, load_settings
from platformctl.containers import catalog
from platformctl.containers.base import StartedContainer
from platformctl.containers.runtime import DockerRuntime, StartedNetwork
from platformctl.core.exceptions import MissingDependencyError
from platformctl.core.images import ImageResolver
from platformctl.core.registry import ContainerRegistry
from platformctl.utils.logging_setup import LogContext, format_duration


@dataclass(frozen=True)
class E2eResult:
    exit_code: int
    success: bool
    duration_ms: float


class UserDefinedContainerStarter:
    """
    Starts the containers listed under ``platformConfig.container``.

    Services need the postgres and keycloak handles, BFFs need keycloak.
    UIs and the e2e runner need neither.
    """

    def __init__(
        self,
        network: StartedNetwork,
        image_resolver: ImageResolver,
        runtime: DockerRuntime,
        registry: ContainerRegistry,
        config: PlatformConfig,
        log_context: Optional[LogContext] = None,
        postgres: Optional[StartedContainer] = None,
        keycloak: Optional[StartedContainer] = None,
        output_path: Optional[Path] = None,
        settings: Optional[Mapping[str, str]] = None
    ):
        self.network = network
        self.image_resolver = image_resolver
        self.runtime = runtime
        self.registry = registry
        self.config = config
        self.log_context = log_context or LogContext(config.enable_logging)
        self.postgres = postgres
        self.keycloak = keycloak
        self.output_path = output_path or get_output_path()
        self.settings = settings or load_settings()
        self.logger = logging.getLogger('platformctl.starter.custom')

    async def create_and_start_containers(self) -> None:
        """Start every declared service, BFF and UI and register it under its alias."""
        definitions = self.config.container
        if definitions is None:
            return

        self.logger.info("Creating user-defined containers")
        for svc_config in definitions.service:
            self.logger.info(f"Creating service container: {svc_config.network_alias}")
            container = await self.create_svc_container(svc_config)
            self.registry.add_container(svc_config.network_alias, container)

        for bff_config in definitions.bff:
            self.logger.info(f"Creating BFF container: {bff_config.network_alias}")
            container = await self.create_bff_container(bff_config)
            self.registry.add_container(bff_config.network_alias, container)

        for ui_config in definitions.ui:
            self.logger.info(f"Creating UI container: {ui_config.network_alias}")
            container = await self.create_ui_container(ui_config)
            self.registry.add_container(ui_config.network_alias, container)

    async def create_svc_container(self, svc_config: SvcContainerConfig) -> StartedContainer:
        if self.postgres is None or self.keycloak is None:
            raise MissingDependencyError('Postgres and Keycloak containers are required for service containers')

        image = await self.image_resolver.get_image(svc_config.image)
        # credentials only apply as a pair
        use_credentials = bool(svc_config.database_username and svc_config.database_password)
        spec = catalog.service_spec(
            image,
            svc_config.network_alias,
            self.postgres,
            self.keycloak,
            database_username=svc_config.database_username if use_credentials else None,
            database_password=svc_config.database_password if use_credentials else None,
            environment=svc_config.environments,
            health_check=svc_config.health_check,
            log_output=self.log_context.is_enabled_for(svc_config.network_alias)
        )
        return await self.runtime.start(spec, self.network)

    async def create_bff_container(self, bff_config: BffContainerConfig) -> StartedContainer:
        if self.keycloak is None:
            raise MissingDependencyError('Keycloak container is required for BFF containers but was not provided.')

        image = await self.image_resolver.get_image(bff_config.image)
        spec = catalog.bff_spec(
            image,
            bff_config.network_alias,
            self.keycloak,
            permissions_product_name=bff_config.permissions_product_name or '',
            environment=bff_config.environments,
            health_check=bff_config.health_check,
            log_output=self.log_context.is_enabled_for(bff_config.network_alias)
        )
        return await self.runtime.start(spec, self.network)

    async def create_ui_container(self, ui_config: UiContainerConfig) -> StartedContainer:
        image = await self.image_resolver.get_image(ui_config.image)
        spec = catalog.ui_spec(
            image,
            ui_config.network_alias,
            app_id=ui_config.app_id,
            product_name=ui_config.product_name,
            app_base_href=ui_config.app_base_href,
            environment=ui_config.environments,
            health_check=ui_config.health_check,
            log_output=self.log_context.is_enabled_for(ui_config.network_alias)
        )
        return await self.runtime.start(spec, self.network)

    def _e2e_base_url(self, e2e_config: E2eContainerConfig) -> Optional[str]:
        if e2e_config.base_url:
            return e2e_config.base_url
        if self.settings.get('base_url'):
            return self.settings['base_url']
        shell_ui = self.registry.get_container(catalog.ContainerKey.SHELL_UI)
        if shell_ui is not None:
            return f"{catalog.service_url(shell_ui)}{shell_ui.detail('app_base_href') or '/'}"
        return None

    async def run_e2e_tests(self) -> Optional[E2eResult]:
        """
        Run the configured e2e container to completion.

        Returns:
            E2eResult, or None if no e2e container is configured.
        """
        e2e_config = self.config.e2e
        if e2e_config is None:
            return None

        self.logger.info(f"Starting E2E container: {e2e_config.network_alias}")
        return await self.create_e2e_container(e2e_config)

    async def create_e2e_container(self, e2e_config: E2eContainerConfig) -> E2eResult:
        started = time.monotonic()
        image = await self.image_resolver.get_image(e2e_config.image)

        self.output_path.mkdir(parents=True, exist_ok=True)
        spec = catalog.e2e_spec(
            image,
            e2e_config.network_alias,
            self.output_path,
            base_url=self._e2e_base_url(e2e_config),
            environment=e2e_config.environments,
            log_output=self.log_context.is_enabled_for(e2e_config.network_alias)
        )
        container = await self.runtime.start(spec, self.network)

        self.logger.info("E2E container finished, retrieving exit code...")
        try:
            exit_code = container.get_exit_code()
        finally:
            await self._remove_e2e_container(container)
        if exit_code is None:
            self.logger.warning("Could not determine E2E exit code, assuming failure")
            exit_code = 1

        duration = (time.monotonic() - started) * 1000
        success = exit_code == 0
        if success:
            self.logger.info(f"E2E tests completed successfully in {format_duration(duration)}")
        else:
            self.logger.error(f"E2E tests failed with exit code {exit_code}")
        return E2eResult(exit_code=exit_code, success=success, duration_ms=duration)

    async def _remove_e2e_container(self, container: StartedContainer) -> None:
        # the e2e container is never registered, so stop_all_containers cannot reach it
        try:
            await container.stop()
        except Exception as e:
            self.logger.error(f"Failed to remove E2E container {container.name}: {e}")
