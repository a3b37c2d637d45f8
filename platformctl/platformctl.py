#!/usr/bin/env python3
"""
platformctl - Provision and tear down container test platforms.
"""
import sys
import signal
import asyncio
import logging
from pathlib import Path
from typing import Optional

import click
import yaml
from dotenv import load_dotenv

from platformctl.config.config_manager import PlatformConfigLoader
from platformctl.config.settings import load_settings
from platformctl.core.exceptions import PlatformError
from platformctl.core.manager import PlatformManager
from platformctl.monitoring.metrics import MetricsManager
from platformctl.ui.console import ConsoleUI
from platformctl.utils.logging_setup import configure_logging

VERSION = "1.0.0"
ui = ConsoleUI()
logger = logging.getLogger('platformctl.cli')


def setup_logging(debug: bool, log_config: Optional[str] = None) -> None:
    """Configure logging from an optional YAML file, else from flags and environment."""
    config = {}
    if log_config:
        with open(log_config, 'r') as f:
            config = yaml.safe_load(f) or {}
    level_name = 'DEBUG' if debug else load_settings()['log_level'].upper()
    configure_logging(config, default_level=getattr(logging, level_name, logging.INFO))


async def wait_for_shutdown_signal() -> None:
    """Block until SIGINT or SIGTERM is received."""
    loop = asyncio.get_running_loop()
    stop = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)
    try:
        await stop.wait()
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)


async def run_platform(manager: PlatformManager) -> int:
    """Start the platform, keep it running until interrupted, then stop it."""
    try:
        with ui.show_progress("Starting platform..."):
            await manager.start_containers()
        manager.export_platform_info()
        ui.display_platform_info(manager.get_platform_info())
        ui.console.print("Platform running, press Ctrl+C to stop")
        await wait_for_shutdown_signal()
        return 0
    except Exception as e:
        ui.print_error(e)
        return 1
    finally:
        ui.display_stop_outcomes(await manager.stop_all_containers())


async def run_e2e(manager: PlatformManager) -> int:
    """
    Start the platform, run the e2e container and stop everything.

    Returns:
        int: The test runner's exit code, 1 on any internal error.
    """
    try:
        with ui.show_progress("Starting platform..."):
            await manager.start_containers()
        manager.export_platform_info()
        ui.display_platform_info(manager.get_platform_info())

        ui.display_health_status(await manager.check_all_healthy())

        result = await manager.run_e2e_tests()
        if result is None:
            ui.print_error("No E2E result returned")
            return 1
        ui.display_e2e_result(result)
        return result.exit_code
    except Exception as e:
        ui.print_error(e)
        return 1
    finally:
        ui.display_stop_outcomes(await manager.stop_all_containers())


def create_manager(config_path: Optional[str], metrics_port: Optional[int] = None) -> PlatformManager:
    metrics = None
    if metrics_port:
        metrics = MetricsManager()
        metrics.start_server(metrics_port)
    try:
        return PlatformManager(config_file_path=config_path, metrics=metrics)
    except PlatformError as e:
        ui.print_error(e)
        sys.exit(1)


# CLI Commands
@click.group()
@click.version_option(version=VERSION)
@click.option('--debug', is_flag=True, help='Enable debug logging')
@click.option('--log-config', type=click.Path(exists=True, dir_okay=False), help='YAML file with a logging section')
@click.option('--env-file', type=click.Path(dir_okay=False), default='.env', show_default=True,
              help='Environment file to load')
@click.pass_context
def cli(ctx, debug, log_config, env_file):
    """platformctl - Provision container test platforms"""
    if Path(env_file).exists():
        load_dotenv(env_file)
    setup_logging(debug, log_config)

    ctx.ensure_object(dict)
    ctx.obj['DEBUG'] = debug
    if debug:
        logger.debug(f"Current working directory: {Path.cwd()}")


@cli.command()
@click.option('--config', 'config_path', envvar='CONFIG_PATH', help='Path to integration-tests.json')
@click.option('--metrics-port', type=int, help='Expose Prometheus metrics on this port')
def start(config_path: Optional[str], metrics_port: Optional[int]):
    """Start the platform and keep it running until interrupted"""
    manager = create_manager(config_path, metrics_port)
    sys.exit(asyncio.run(run_platform(manager)))


@cli.command()
@click.option('--config', 'config_path', envvar='CONFIG_PATH', help='Path to integration-tests.json')
def e2e(config_path: Optional[str]):
    """Start the platform, run the e2e container and exit with its code"""
    manager = create_manager(config_path)
    if not manager.has_e2e_config():
        ui.print_error("No E2E container configured in platformConfig.container.e2e")
        sys.exit(1)
    sys.exit(asyncio.run(run_e2e(manager)))


@cli.command()
@click.option('--config', 'config_path', envvar='CONFIG_PATH', help='Path to integration-tests.json')
def validate(config_path: Optional[str]):
    """Validate a configuration file against the schema"""
    result = PlatformConfigLoader().validate_config_file(config_path)
    ui.display_validation(result)
    sys.exit(0 if result.is_valid else 1)


if __name__ == '__main__':
    cli()
