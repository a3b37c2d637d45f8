#!/usr/bin/env python3
"""
Top level orchestration of the test platform.

The PlatformManager validates configuration, drives the starters in order,
wires up health checking and the heartbeat and tears everything down again
in reverse order.
"""

import enum
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Any, List, Optional, Union

from platformctl.config.config_manager import PlatformConfigLoader
from platformctl.config.models import PlatformConfig, HeartbeatConfig, DEFAULT_PLATFORM_CONFIG
from platformctl.config.settings import get_output_path, load_settings
from platformctl.containers import catalog
from platformctl.containers.base import StartedContainer
from platformctl.containers.runtime import DockerRuntime, StartedNetwork
from platformctl.core.core_starter import CoreContainerStarter
from platformctl.core.custom_starter import UserDefinedContainerStarter, E2eResult
from platformctl.core.exceptions import NotInitializedError
from platformctl.core.exporter import PlatformInfoExporter
from platformctl.core.health_checker import HealthChecker, ContainerHealthStatus
from platformctl.core.images import ImagePullChecker, ImageResolver
from platformctl.core.importer import DataImporter
from platformctl.core.registry import ContainerRegistry
from platformctl.monitoring.metrics import MetricsManager
from platformctl.utils.logging_setup import LogContext

HEALTH_CHECKER_NOT_INITIALIZED = 'HealthChecker not initialized. Call start_containers first.'


class PlatformState(enum.Enum):
    UNCONFIGURED = 'unconfigured'
    CONFIGURED = 'configured'
    STARTING = 'starting'
    RUNNING = 'running'
    STOPPING = 'stopping'
    STOPPED = 'stopped'


@dataclass(frozen=True)
class StopOutcome:
    """Result of stopping one registry entry during teardown."""
    name: str
    stopped: bool
    error: Optional[str] = None


class PlatformManager:
    """
    Starts, monitors and stops the whole platform.

    Attributes:
        state (PlatformState): Current lifecycle state.
        registry (ContainerRegistry): Everything that is running.
        runtime (DockerRuntime): Container engine adapter.
        metrics (Optional[MetricsManager]): Optional Prometheus metrics.
    """

    def __init__(
        self,
        config_file_path: Optional[Union[str, Path]] = None,
        config: Optional[PlatformConfig] = None,
        runtime: Optional[DockerRuntime] = None,
        metrics: Optional[MetricsManager] = None,
        config_loader: Optional[PlatformConfigLoader] = None,
        output_path: Optional[Path] = None
    ):
        self.logger = logging.getLogger('platformctl.manager')
        self.state = PlatformState.UNCONFIGURED
        self.registry = ContainerRegistry()
        self.runtime = runtime or DockerRuntime()
        self.metrics = metrics
        self.config_loader = config_loader or PlatformConfigLoader()
        self.output_path = output_path or get_output_path()
        self.settings = load_settings()

        self.network = None  # type: Optional[StartedNetwork]
        self.image_resolver = None  # type: Optional[ImageResolver]
        self.core_starter = None  # type: Optional[CoreContainerStarter]
        self.user_defined_starter = None  # type: Optional[UserDefinedContainerStarter]
        self.data_importer = None  # type: Optional[DataImporter]
        self.health_checker = None  # type: Optional[HealthChecker]
        self.platform_info_exporter = None  # type: Optional[PlatformInfoExporter]
        self.log_context = LogContext()
        self._active_config = None  # type: Optional[PlatformConfig]

        if config is not None:
            self.validated_config = config  # type: Optional[PlatformConfig]
        else:
            self.validated_config = self._initialize_configuration(config_file_path)
        self.state = PlatformState.CONFIGURED

    def _initialize_configuration(self, config_file_path: Optional[Union[str, Path]]) -> Optional[PlatformConfig]:
        """
        Load the config file; parse and schema problems fall back to the defaults.
        """
        result = self.config_loader.validate_config_file(config_file_path)
        if result.is_valid:
            self.logger.info(f"Configuration loaded and validated successfully from {result.path}")
            return result.config
        if result.path is not None and result.path.exists():
            self.logger.warning(
                "Configuration validation failed, using default configuration: " + '; '.join(result.errors)
            )
        else:
            self.logger.info("No configuration file found, using default configuration")
        return None

    def get_validated_config(self) -> Optional[PlatformConfig]:
        return self.validated_config

    def has_validated_config(self) -> bool:
        return self.validated_config is not None

    @property
    def effective_config(self) -> PlatformConfig:
        return self._active_config or self.validated_config or DEFAULT_PLATFORM_CONFIG

    def has_e2e_config(self) -> bool:
        return self.effective_config.e2e is not None

    async def start_containers(self, config: Optional[PlatformConfig] = None) -> None:
        """
        Bring up the whole platform.

        Args:
            config: Overrides the validated configuration for this start.

        Errors propagate to the caller; containers started before the
        failure stay registered so stop_all_containers() can remove them.
        """
        final_config = config or self.validated_config or DEFAULT_PLATFORM_CONFIG
        self._active_config = final_config
        self.state = PlatformState.STARTING
        self.logger.info("Initializing platform")

        self.log_context = LogContext(final_config.enable_logging)
        self.runtime.log_context = self.log_context

        self.health_checker = HealthChecker(metrics=self.metrics)
        self.health_checker.configure_heartbeat(final_config.heartbeat)

        self.image_resolver = ImageResolver(ImagePullChecker(self.runtime), final_config)
        self.data_importer = DataImporter(
            self.image_resolver, self.runtime, self.log_context, self.output_path, self.settings
        )

        self.logger.info("Creating network")
        self.network = await self.runtime.create_network()

        self.core_starter = CoreContainerStarter(
            self.image_resolver,
            self.runtime,
            self.registry,
            final_config,
            self.log_context,
            self.metrics,
            self.settings
        )

        self.logger.info("Starting platform")
        postgres, keycloak = await self.core_starter.start_core_containers(self.network)
        await self.core_starter.start_service_containers(self.network, postgres, keycloak)
        await self.core_starter.start_bff_containers(self.network, keycloak)
        await self.core_starter.start_ui_containers(self.network)

        if final_config.container is not None and final_config.container.has_user_containers():
            self.user_defined_starter = self._create_user_defined_starter(final_config)
            await self.user_defined_starter.create_and_start_containers()
            self.logger.info("User-defined containers created successfully")

        if final_config.import_data:
            await self.data_importer.import_default_data(self.network, self.registry.get_all_containers())

        self.logger.info("Platform ready")
        self.health_checker.start_heartbeat(self.registry.get_all_containers())
        self.platform_info_exporter = PlatformInfoExporter(self.registry, self.network, self.output_path)
        self.state = PlatformState.RUNNING

    def _create_user_defined_starter(self, config: PlatformConfig) -> UserDefinedContainerStarter:
        return UserDefinedContainerStarter(
            self.network,
            self.image_resolver,
            self.runtime,
            self.registry,
            config,
            self.log_context,
            postgres=self.registry.get_container(catalog.ContainerKey.POSTGRES),
            keycloak=self.registry.get_container(catalog.ContainerKey.KEYCLOAK),
            output_path=self.output_path,
            settings=self.settings
        )

    def _require_health_checker(self) -> HealthChecker:
        if self.health_checker is None:
            raise NotInitializedError(HEALTH_CHECKER_NOT_INITIALIZED)
        return self.health_checker

    async def check_all_healthy(self) -> List[ContainerHealthStatus]:
        return await self._require_health_checker().check_all_healthy(self.registry.get_all_containers())

    async def check_healthy(self, name: str) -> ContainerHealthStatus:
        return await self._require_health_checker().check_healthy(self.registry.get_all_containers(), name)

    def start_heartbeat(self) -> None:
        self._require_health_checker().start_heartbeat(self.registry.get_all_containers())

    def stop_heartbeat(self) -> None:
        if self.health_checker is not None:
            self.health_checker.stop_heartbeat()

    def is_heartbeat_running(self) -> bool:
        return self.health_checker is not None and self.health_checker.is_heartbeat_running()

    def get_heartbeat_config(self) -> HeartbeatConfig:
        if self.health_checker is not None:
            return self.health_checker.get_heartbeat_config()
        return self.effective_config.heartbeat

    def get_all_containers(self) -> Dict[str, StartedContainer]:
        return self.registry.get_all_containers()

    def get_container(self, key: str) -> Optional[StartedContainer]:
        return self.registry.get_container(key)

    def has_container(self, key: str) -> bool:
        return self.registry.has_container(key)

    async def remove_container(self, key: str) -> bool:
        """Stop a container and drop it from the registry."""
        container = self.registry.get_container(key)
        if container is not None:
            try:
                await container.stop()
                self.logger.info(f"Container stopped: {key}")
            except Exception as e:
                self.logger.error(f"Failed to stop container {key}: {e}")
                raise
        return self.registry.remove_container(key)

    async def stop_all_containers(self) -> List[StopOutcome]:
        """
        Tear the platform down, best effort.

        The heartbeat is stopped first, then every container in reverse
        start order, then the network. Individual failures are logged and
        reported, never raised. The registry is always cleared.

        Returns:
            List[StopOutcome]: One entry per registered container.
        """
        self.state = PlatformState.STOPPING
        self.logger.info("Stopping platform")
        self.stop_heartbeat()

        outcomes = []
        try:
            for key, container in reversed(list(self.registry.get_all_containers().items())):
                try:
                    await container.stop()
                    outcomes.append(StopOutcome(name=key, stopped=True))
                    self.logger.info(f"Container stopped: {key}")
                except Exception as e:
                    outcomes.append(StopOutcome(name=key, stopped=False, error=str(e)))
                    self.logger.error(f"Failed to stop container {key}: {e}")

            if self.network is not None:
                try:
                    await self.network.stop()
                    self.logger.info("Network destroyed")
                except Exception as e:
                    self.logger.error(f"Network cleanup failed: {e}")
                self.network = None
        finally:
            self.registry.clear()
            self.state = PlatformState.STOPPED

        failed = [outcome.name for outcome in outcomes if not outcome.stopped]
        if failed:
            self.logger.warning(f"Platform shut down with stop failures: {', '.join(failed)}")
        else:
            self.logger.info("Platform shut down")
        return outcomes

    def get_platform_info(self) -> Optional[Dict[str, Any]]:
        if self.platform_info_exporter is None:
            self.logger.warning("Platform info exporter not initialized. Call start_containers first.")
            return None
        return self.platform_info_exporter.get_platform_info()

    def export_platform_info(self) -> Optional[Dict[str, Any]]:
        if self.platform_info_exporter is None:
            self.logger.warning("Platform info exporter not initialized. Call start_containers first.")
            return None
        return self.platform_info_exporter.export_all()

    async def run_e2e_tests(self) -> Optional[E2eResult]:
        """
        Run the configured e2e container.

        Returns:
            E2eResult, or None when no e2e container is configured.

        Raises:
            NotInitializedError: If the platform has not been started.
        """
        config = self.effective_config
        if config.e2e is None:
            return None

        if self.user_defined_starter is None:
            if self.network is None or self.image_resolver is None:
                raise NotInitializedError('Network and ImageResolver must be initialized before running E2E tests')
            self.user_defined_starter = self._create_user_defined_starter(config)

        return await self.user_defined_starter.run_e2e_tests()
