"""
platformctl - provisions and tears down multi-container test platforms.
"""

from platformctl.core.manager import PlatformManager, PlatformState, StopOutcome
from platformctl.platformctl import cli, VERSION

__all__ = ['PlatformManager', 'PlatformState', 'StopOutcome', 'cli', 'VERSION']
