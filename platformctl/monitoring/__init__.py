"""Monitoring support for platformctl."""

from platformctl.monitoring.metrics import MetricsManager

__all__ = ['MetricsManager']
