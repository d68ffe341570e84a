"""Prometheus metrics exporter module.

This module handles:
- Defining Prometheus metrics for poll health and fleet state
- Exposing metrics HTTP server on configurable port
- Updating metrics after each poll cycle
"""

import logging
import time
from datetime import datetime, timezone
from typing import List, Optional, Set, Tuple

from prometheus_client import Counter, Gauge, start_http_server, REGISTRY, CollectorRegistry

from pod_exporter.models import Device

# Configure module logger
logger = logging.getLogger(__name__)


class PodExporter:
    """Prometheus exporter for the pod poller.

    Exposes the following metrics:
    - pod_battery_remaining: Remaining battery per pet (labels id, name)
    - pod_location_age_seconds: Age of the last GPS fix per pet (labels id, name)
    - pod_devices: Number of pets in the last roster
    - pod_points_written_total: Points written to InfluxDB
    - pod_poll_success: Whether the last poll succeeded (1=success, 0=failure)
    - pod_poll_timestamp: Unix timestamp of last poll
    - pod_poll_duration_seconds: Duration of last poll

    Attributes:
        port: HTTP server port (default 9120)
    """

    def __init__(self, port: int = 9120, registry: Optional[CollectorRegistry] = None):
        """Initialize the exporter.

        Args:
            port: Port to run the HTTP server on
            registry: Optional custom registry for testing. If None, uses default REGISTRY.
        """
        self.port = port
        self._registry = registry if registry is not None else REGISTRY
        self._server_started = False

        self._battery_remaining = Gauge(
            'pod_battery_remaining',
            'Remaining battery reported by the pod',
            ['id', 'name'],
            registry=self._registry
        )

        self._location_age = Gauge(
            'pod_location_age_seconds',
            'Seconds since the last GPS fix',
            ['id', 'name'],
            registry=self._registry
        )

        self._devices = Gauge(
            'pod_devices',
            'Number of pets in the last fetched roster',
            registry=self._registry
        )

        self._points_written = Counter(
            'pod_points_written',
            'Points written to InfluxDB',
            registry=self._registry
        )

        # Operational metrics (no labels)
        self._poll_success = Gauge(
            'pod_poll_success',
            'Whether the last poll succeeded (1=success, 0=failure)',
            registry=self._registry
        )

        self._poll_timestamp = Gauge(
            'pod_poll_timestamp',
            'Unix timestamp of the last poll',
            registry=self._registry
        )

        self._poll_duration = Gauge(
            'pod_poll_duration_seconds',
            'Duration of the last poll in seconds',
            registry=self._registry
        )

        # Track which label combinations we've set (for cleanup)
        self._active_labels: Set[Tuple[str, str]] = set()

    def update_devices(self, devices: List[Device], now: Optional[datetime] = None) -> None:
        """Update per-pet gauges from the latest roster.

        Pets missing from the roster have their series removed.

        Args:
            devices: Devices from the latest roster
            now: Poll time used for fix age (default: current UTC time)
        """
        if now is None:
            now = datetime.now(timezone.utc)

        current: Set[Tuple[str, str]] = set()
        for device in devices:
            labels = (device.id, device.name)
            current.add(labels)
            self._battery_remaining.labels(*labels).set(device.battery.remaining)
            if device.location.timestamp is not None:
                age = (now - device.location.timestamp).total_seconds()
                self._location_age.labels(*labels).set(age)

        for labels in self._active_labels - current:
            for gauge in (self._battery_remaining, self._location_age):
                try:
                    gauge.remove(*labels)
                except KeyError:
                    pass  # Label combination doesn't exist

        self._active_labels = current
        self._devices.set(len(devices))

    def add_points_written(self, count: int) -> None:
        """Count points written to InfluxDB."""
        self._points_written.inc(count)

    def set_poll_success(self, success: bool, duration: float) -> None:
        """Update operational metrics after a poll attempt.

        Args:
            success: Whether the poll succeeded
            duration: How long the poll took in seconds
        """
        self._poll_success.set(1 if success else 0)
        self._poll_timestamp.set(time.time())
        self._poll_duration.set(duration)

    def start(self) -> None:
        """Start the HTTP server to expose metrics.

        The server runs in a daemon thread and exposes metrics at:
        http://localhost:{port}/metrics
        """
        if self._server_started:
            logger.warning("Prometheus server already started")
            return

        logger.info(f"Starting Prometheus HTTP server on port {self.port}")
        start_http_server(self.port, registry=self._registry)
        self._server_started = True
