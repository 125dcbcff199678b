"""Telemetry module for logging and metrics."""

from queuewatch.telemetry.logger import AsyncLogger, setup_logging
from queuewatch.telemetry.metrics import LatencyStats, MetricsCollector


__all__ = [
    "AsyncLogger",
    "LatencyStats",
    "MetricsCollector",
    "setup_logging",
]
