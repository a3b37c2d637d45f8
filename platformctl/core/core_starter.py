#!/usr/bin/env python3
"""
Startup of the built-in platform containers.

Containers come up in four phases, each gated on the previous one:
core (postgres, keycloak), services, BFFs and UIs. Any failure aborts the
remaining work and propagates.
"""

import time
import logging
from typing import Optional, Tuple, Mapping, Sequence

from platformctl.config.models import PlatformConfig
from platformctl.config.settings import load_settings
from platformctl.containers import catalog
from platformctl.containers.base import StartedContainer, ContainerSpec
from platformctl.containers.runtime import DockerRuntime, StartedNetwork
from platformctl.core.exceptions import MissingDependencyError
from platformctl.core.images import ImageResolver
from platformctl.core.registry import ContainerRegistry
from platformctl.monitoring.metrics import MetricsManager
from platformctl.utils.logging_setup import LogContext, format_duration


class CoreContainerStarter:
    """
    Starts the core platform in dependency order and registers each container.

    Attributes:
        image_resolver (ImageResolver): Picks the image for each component.
        runtime (DockerRuntime): Starts the containers.
        registry (ContainerRegistry): Receives every started container.
        config (PlatformConfig): Platform configuration.
        log_context (LogContext): Decides which containers stream logs.
    """

    def __init__(
        self,
        image_resolver: ImageResolver,
        runtime: DockerRuntime,
        registry: ContainerRegistry,
        config: PlatformConfig,
        log_context: Optional[LogContext] = None,
        metrics: Optional[MetricsManager] = None,
        settings: Optional[Mapping[str, str]] = None
    ):
        self.image_resolver = image_resolver
        self.runtime = runtime
        self.registry = registry
        self.config = config
        self.log_context = log_context or LogContext(config.enable_logging)
        self.metrics = metrics
        self.settings = settings or load_settings()
        self.logger = logging.getLogger('platformctl.starter.core')

    async def _start(self, key: str, spec: ContainerSpec, network: StartedNetwork) -> StartedContainer:
        started = time.monotonic()
        container = await self.runtime.start(spec, network)
        elapsed = time.monotonic() - started
        if self.metrics is not None:
            self.metrics.observe_startup(spec.kind.value, elapsed)
        self.registry.add_container(key, container)
        self.logger.info(f"{key} started in {format_duration(elapsed * 1000)}")
        return container

    def _require(self, keys: Sequence[str], dependant: str) -> None:
        missing = [key for key in keys if not self.registry.has_container(key)]
        if missing:
            raise MissingDependencyError(
                f"Cannot start {dependant}: required container(s) not started: {', '.join(missing)}"
            )

    def _log_enabled(self, alias: str) -> bool:
        return self.log_context.is_enabled_for(alias)

    async def start_core_containers(self, network: StartedNetwork) -> Tuple[StartedContainer, StartedContainer]:
        """
        Phase 1: start postgres and keycloak.

        Returns:
            Tuple of the postgres and keycloak handles.
        """
        self.logger.info("Starting core containers")
        postgres_image = await self.image_resolver.get_postgres_image()
        postgres = await self._start(
            catalog.ContainerKey.POSTGRES,
            catalog.postgres_spec(postgres_image, self._log_enabled(catalog.POSTGRES_ALIAS)),
            network
        )

        keycloak_image = await self.image_resolver.get_keycloak_image()
        keycloak = await self._start(
            catalog.ContainerKey.KEYCLOAK,
            catalog.keycloak_spec(keycloak_image, self.settings, self._log_enabled(catalog.KEYCLOAK_ALIAS)),
            network
        )
        return postgres, keycloak

    async def start_service_containers(
        self,
        network: StartedNetwork,
        postgres: StartedContainer,
        keycloak: StartedContainer
    ) -> None:
        """Phase 2: start the backend services."""
        self._require((catalog.ContainerKey.POSTGRES, catalog.ContainerKey.KEYCLOAK), 'service containers')
        self.logger.info("Starting service containers")

        for component in catalog.CORE_SERVICES:
            self._require(component.requires, component.key)
            image = await self.image_resolver.get_service_image(component)
            spec = catalog.service_spec(
                image,
                component.alias,
                postgres,
                keycloak,
                port=component.port,
                environment=self._dependency_environment(component),
                log_output=self._log_enabled(component.alias)
            )
            await self._start(component.key, spec, network)

    async def start_bff_containers(self, network: StartedNetwork, keycloak: StartedContainer) -> None:
        """Phase 3: start the BFFs."""
        self._require((catalog.ContainerKey.KEYCLOAK,), 'BFF containers')
        self.logger.info("Starting BFF containers")

        for component in catalog.CORE_BFFS:
            self._require(component.requires, component.key)
            image = await self.image_resolver.get_bff_image(component)
            spec = catalog.bff_spec(
                image,
                component.alias,
                keycloak,
                port=component.port,
                permissions_product_name=catalog.SHELL_PRODUCT_NAME,
                environment=self._dependency_environment(component),
                log_output=self._log_enabled(component.alias)
            )
            await self._start(component.key, spec, network)

    async def start_ui_containers(self, network: StartedNetwork) -> None:
        """Phase 4: start the UIs; each needs its BFF."""
        self.logger.info("Starting UI containers")

        for component in catalog.CORE_UIS:
            self._require(component.requires, component.key)
            image = await self.image_resolver.get_ui_image(component)
            spec = catalog.ui_spec(
                image,
                component.alias,
                kind=component.kind,
                port=component.port,
                app_id=catalog.SHELL_UI_APP_ID,
                product_name=catalog.SHELL_PRODUCT_NAME,
                app_base_href=catalog.SHELL_UI_BASE_HREF,
                client_user_id=catalog.SHELL_UI_CLIENT_ID,
                environment=self._dependency_environment(component),
                log_output=self._log_enabled(component.alias)
            )
            await self._start(component.key, spec, network)

    def _dependency_environment(self, component: catalog.CoreComponent):
        """Point a component at the containers it requires, e.g. ONECX_TENANT_SVC_URL."""
        env = {}
        for key in component.requires:
            dependency = self.registry.get_container(key)
            variable = key.replace('onecx-', '', 1).replace('-', '_').upper()
            env[f"ONECX_{variable}_URL"] = catalog.service_url(dependency)
        return env

    async def start_all(self, network: StartedNetwork) -> None:
        """Run the four phases in order."""
        postgres, keycloak = await self.start_core_containers(network)
        await self.start_service_containers(network, postgres, keycloak)
        await self.start_bff_containers(network, keycloak)
        await self.start_ui_containers(network)
