#!/usr/bin/env python3
"""
Platform info export.

Builds a snapshot of the network and every started container (internal
and external URLs, running flag, environment) and writes it where the e2e
runner and CI jobs can pick it up.
"""

import os
import json
import logging
from pathlib import Path
from typing import Dict, Any, Optional

from platformctl.config.settings import get_output_path
from platformctl.containers import catalog
from platformctl.containers.base import ContainerKind, StartedContainer
from platformctl.containers.runtime import StartedNetwork
from platformctl.core.registry import ContainerRegistry

PLATFORM_INFO_FILE = 'platform-info.json'
DEFAULT_INTERNAL_PORT = 8080
DOCKER_BRIDGE_PREFIXES = ('172.17.', '172.18.')


class PlatformInfoExporter:
    """Derives the platform info snapshot from the registry and the network."""

    def __init__(
        self,
        registry: ContainerRegistry,
        network: StartedNetwork,
        output_path: Optional[Path] = None
    ):
        self.registry = registry
        self.network = network
        self.output_path = output_path or get_output_path()
        self.logger = logging.getLogger('platformctl.exporter')

    @staticmethod
    def normalize_host(host: str) -> str:
        """Docker bridge addresses are reachable as localhost from the host."""
        if host.startswith(DOCKER_BRIDGE_PREFIXES):
            return 'localhost'
        return host

    def build_container_info(self, container: StartedContainer) -> Dict[str, Any]:
        internal_port = container.port or DEFAULT_INTERNAL_PORT
        internal_url = f"http://{container.name}:{internal_port}"
        mapped_port = container.get_mapped_port(internal_port)
        host = self.normalize_host(container.host)
        return {
            'name': container.name,
            'kind': container.kind.value,
            'host': host,
            'port': mapped_port or 0,
            'internalPort': internal_port,
            'internalUrl': internal_url,
            'externalUrl': f"http://{host}:{mapped_port}" if mapped_port else '',
            'running': container.running,
            'environment': dict(sorted(container.environment.items())),
        }

    def get_container_info(self, key: str) -> Optional[Dict[str, Any]]:
        container = self.registry.get_container(key)
        if container is None:
            return None
        return self.build_container_info(container)

    def get_all_container_infos(self) -> Dict[str, Dict[str, Any]]:
        infos = {}
        for key, container in self.registry.get_all_containers().items():
            if container.kind is ContainerKind.E2E:
                self.logger.debug(f"Skipping {key}: e2e runner has no service URLs")
                continue
            infos[key] = self.build_container_info(container)
        return infos

    def get_platform_info(self) -> Dict[str, Any]:
        containers = self.get_all_container_infos()
        shell_ui = containers.get(catalog.ContainerKey.SHELL_UI, {})
        keycloak = containers.get(catalog.ContainerKey.KEYCLOAK, {})
        shell_bff = containers.get(catalog.ContainerKey.SHELL_BFF, {})
        return {
            'network': {'name': self.network.name, 'id': self.network.id},
            'e2e': {
                'baseUrl': shell_ui.get('internalUrl', ''),
                'keycloakUrl': keycloak.get('internalUrl', ''),
            },
            'external': {
                'shellUi': shell_ui.get('externalUrl', ''),
                'keycloak': keycloak.get('externalUrl', ''),
                'shellBff': shell_bff.get('externalUrl', ''),
            },
            'containers': containers,
        }

    def export_to_file(self, filename: str = PLATFORM_INFO_FILE) -> Path:
        self.output_path.mkdir(parents=True, exist_ok=True)
        path = self.output_path / filename
        path.write_text(json.dumps(self.get_platform_info(), indent=2))
        self.logger.info(f"Platform info written to: {path}")
        return path

    def log_platform_info(self) -> None:
        info = self.get_platform_info()
        self.logger.info('=' * 70)
        self.logger.info('Platform Ready!')
        self.logger.info('For E2E container (inside the docker network):')
        self.logger.info(f"  BASE_URL:     {info['e2e']['baseUrl']}")
        self.logger.info(f"  KEYCLOAK_URL: {info['e2e']['keycloakUrl']}")
        self.logger.info(f"  Network:      {info['network']['name']}")
        self.logger.info('For browser/debugging (from the host):')
        self.logger.info(f"  Shell UI:     {info['external']['shellUi']}")
        self.logger.info(f"  Keycloak:     {info['external']['keycloak']}")
        self.logger.info('=' * 70)

    def log_container_environment(self, key: str) -> None:
        """Dump the environment of one container at DEBUG level."""
        container = self.registry.get_container(key)
        if container is None:
            self.logger.warning(f"Container {key} not found in registry")
            return
        environment = container.environment
        self.logger.debug(f"Environment variables for {key}:")
        for name in sorted(environment):
            self.logger.debug(f"  {name}={environment[name]}")
        self.logger.debug(f"Total: {len(environment)} environment variables")

    def write_ci_outputs(self, info_path: Optional[Path] = None) -> bool:
        """
        Append key=value lines to $GITHUB_OUTPUT when running in a pipeline.

        Returns:
            bool: Whether anything was written.
        """
        output_file = os.environ.get('GITHUB_OUTPUT')
        if not output_file:
            return False

        info = self.get_platform_info()
        lines = {
            'platform_network': info['network']['name'],
            'shell_ui_url': info['external']['shellUi'],
            'keycloak_url': info['external']['keycloak'],
        }
        if info_path is not None:
            lines['platform_info_file'] = str(info_path)
        with open(output_file, 'a') as f:
            for key, value in lines.items():
                f.write(f"{key}={value}\n")
        self.logger.debug(f"Wrote {len(lines)} CI outputs to {output_file}")
        return True

    def export_all(self) -> Dict[str, Any]:
        """Log the summary, write the info file and any CI outputs."""
        self.log_platform_info()
        if self.logger.isEnabledFor(logging.DEBUG):
            for key in self.registry.get_all_containers():
                self.log_container_environment(key)
        path = self.export_to_file()
        self.write_ci_outputs(path)
        return self.get_platform_info()
