#!/usr/bin/env python3
"""
Health check executors for started containers.

A container's declared health check is turned into one of two strategies:
an HTTP probe against the published port, or a skip for containers with
no network exposed health surface.
"""

import abc
import re
import time
import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Any, Optional, Sequence, Iterable

import aiohttp

DEFAULT_HEALTH_CHECK_TIMEOUT_MS = 8000
DEFAULT_ACCEPTED_STATUS_CODES = (200, 503)

URL_PATTERN = re.compile(r'https?://[^\s/:\'"]+(?::\d+)?(?P<path>/[^\s\'"]*)?')


@dataclass(frozen=True)
class HealthCheckResult:
    """Outcome of a single health check execution."""
    success: bool
    message: str = ''
    status_code: Optional[int] = None
    duration_ms: float = 0.0


class HealthCheckExecutor(abc.ABC):
    """Strategy that decides whether a container is healthy right now."""

    @abc.abstractmethod
    async def execute_health_check(self) -> HealthCheckResult:
        """
        Run the check once.

        Returns:
            HealthCheckResult: The verdict. Implementations report network
            problems as a failed result rather than raising.
        """
        pass

    @abc.abstractmethod
    def get_execution_metadata(self) -> Dict[str, Any]:
        """Describe how the check is executed (used in logs and summaries)."""
        pass


class HttpHealthCheckExecutor(HealthCheckExecutor):
    """
    Issues one HTTP GET and accepts a fixed set of status codes.

    503 is accepted by default so that a service reporting "starting" is
    told apart from one that does not answer at all.
    """

    def __init__(
        self,
        endpoint: str,
        timeout_ms: int = DEFAULT_HEALTH_CHECK_TIMEOUT_MS,
        accepted_status_codes: Iterable[int] = DEFAULT_ACCEPTED_STATUS_CODES
    ):
        self.endpoint = endpoint
        self.timeout_ms = timeout_ms
        self.accepted_status_codes = frozenset(accepted_status_codes)
        self.logger = logging.getLogger('platformctl.health')

    async def execute_health_check(self) -> HealthCheckResult:
        started = time.monotonic()
        timeout = aiohttp.ClientTimeout(total=self.timeout_ms / 1000)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(self.endpoint) as response:
                    status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            duration = (time.monotonic() - started) * 1000
            self.logger.debug(f"Health probe {self.endpoint} failed: {e!r}")
            return HealthCheckResult(
                success=False,
                message=f"Request to {self.endpoint} failed: {e.__class__.__name__}",
                duration_ms=duration
            )

        duration = (time.monotonic() - started) * 1000
        success = status in self.accepted_status_codes
        return HealthCheckResult(
            success=success,
            message=f"{self.endpoint} responded with {status}",
            status_code=status,
            duration_ms=duration
        )

    def get_execution_metadata(self) -> Dict[str, Any]:
        return {
            'type': 'http',
            'endpoint': self.endpoint,
            'timeout_ms': self.timeout_ms,
            'accepted_status_codes': sorted(self.accepted_status_codes)
        }


class SkipHealthCheckExecutor(HealthCheckExecutor):
    """Always healthy. Used where there is nothing to probe."""

    def __init__(self, reason: str):
        self.reason = reason

    async def execute_health_check(self) -> HealthCheckResult:
        return HealthCheckResult(success=True, message=f"Skipped: {self.reason}")

    def get_execution_metadata(self) -> Dict[str, Any]:
        return {'type': 'skip', 'reason': self.reason}


def build_health_check_url(
    host: str,
    mapped_port: Optional[int],
    test: Optional[Sequence[str]]
) -> Optional[str]:
    """
    Derive an externally reachable probe URL from a health check command.

    The first http(s) URL in the command is taken and its authority is
    replaced by the published host and port, e.g.
    ``curl --head -fsS http://localhost:8080/q/health`` becomes
    ``http://localhost:49153/q/health``.

    Args:
        host: Host the container's ports are published on.
        mapped_port: Published port of the container.
        test: The health check command, e.g. ['CMD-SHELL', 'curl ...'].

    Returns:
        The probe URL, or None if no URL can be extracted.
    """
    if not test or mapped_port is None:
        return None

    for part in test:
        match = URL_PATTERN.search(part)
        if match:
            path = match.group('path') or '/'
            return f"http://{host}:{mapped_port}{path}"
    return None
