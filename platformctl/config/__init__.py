"""
Configuration package for platformctl.

Provides the typed platform configuration, the config file loader and the
environment settings.
"""

from platformctl.config.models import (
    PlatformConfig,
    HeartbeatConfig,
    PlatformOverrides,
    ContainerDefinitions,
    SvcContainerConfig,
    BffContainerConfig,
    UiContainerConfig,
    E2eContainerConfig,
    DEFAULT_PLATFORM_CONFIG
)
from platformctl.config.config_manager import PlatformConfigLoader, ConfigValidationResult

__all__ = [
    'PlatformConfig',
    'HeartbeatConfig',
    'PlatformOverrides',
    'ContainerDefinitions',
    'SvcContainerConfig',
    'BffContainerConfig',
    'UiContainerConfig',
    'E2eContainerConfig',
    'DEFAULT_PLATFORM_CONFIG',
    'PlatformConfigLoader',
    'ConfigValidationResult'
]
