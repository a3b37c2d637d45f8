#!/usr/bin/env python3
"""
Logging configuration for platformctl.

This module sets up the logging system, provides contextual loggers and the
LogContext that decides which containers stream their output into the log.
"""

import sys
import logging
import logging.config
from pathlib import Path
from typing import Dict, Any, Optional, Union, Sequence

DEFAULT_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


def configure_logging(
    config: Optional[Dict[str, Any]] = None,
    default_level: int = logging.INFO,
    logs_dir: Optional[Union[str, Path]] = None
) -> None:
    """
    Configure the logging system.

    Args:
        config: Optional dictionary with a 'logging' section in
            logging.config.dictConfig() format.
        default_level: Level for the fallback configuration.
        logs_dir: Directory for log files. Created if it doesn't exist.
    """
    if logs_dir:
        Path(logs_dir).mkdir(parents=True, exist_ok=True)

    config = config or {}
    try:
        if 'logging' in config:
            for handler_config in config['logging'].get('handlers', {}).values():
                filename = handler_config.get('filename')
                if filename:
                    Path(filename).parent.mkdir(parents=True, exist_ok=True)

            logging.config.dictConfig(config['logging'])
            return
    except (ValueError, TypeError, AttributeError, ImportError) as e:
        print(f"Error setting up logging configuration: {e}", file=sys.stderr)

    logging.basicConfig(
        level=default_level,
        format=DEFAULT_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True
    )


class LoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that adds contextual information to log messages.

    The context (for example container=shell-ui) is appended to every
    message as [k=v ...].
    """

    def process(self, msg, kwargs):
        context_str = ' '.join(f'{k}={v}' for k, v in self.extra.items())
        if context_str:
            return f"{msg} [{context_str}]", kwargs
        return msg, kwargs


def get_contextual_logger(name: str, **context) -> LoggerAdapter:
    """
    Get a logger that automatically adds contextual information to messages.

    Example:
        >>> logger = get_contextual_logger('platformctl.containers', container='keycloak-app')
        >>> logger.info("Realm imported")
        # Output: "... [INFO] platformctl.containers: Realm imported [container=keycloak-app]"
    """
    return LoggerAdapter(logging.getLogger(name), context)


class LogContext:
    """
    Carries the container log streaming switch and the sink it writes to.

    An instance is handed to every component that starts containers. The
    switch is either a plain bool or a list of aliases allowed to stream.
    """

    def __init__(
        self,
        enabled: Union[bool, Sequence[str]] = False,
        logger: Optional[logging.Logger] = None
    ):
        self.enabled = enabled
        self.logger = logger or logging.getLogger('platformctl.containers')

    def is_enabled_for(self, alias: str) -> bool:
        if isinstance(self.enabled, bool):
            return self.enabled
        return alias in self.enabled

    def for_container(self, alias: str) -> LoggerAdapter:
        return LoggerAdapter(self.logger, {'container': alias})


def format_duration(duration_ms: float) -> str:
    """Format a millisecond duration as seconds, e.g. 1500 -> '1.5s'."""
    return f"{duration_ms / 1000:.1f}s"
