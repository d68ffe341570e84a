"""Poll loop module.

This module handles:
- Running one fetch, transform and write cycle
- Reporting each cycle's outcome as a CycleResult
- Scheduling cycles with APScheduler, one at a time on a fixed tick
- Stopping the scheduler on the first failed cycle
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.date import DateTrigger

from pod_exporter.client import PodClient, PodError
from pod_exporter.exporter import PodExporter
from pod_exporter.influxdb_exporter import DatabaseError, InfluxDBExporter
from pod_exporter.models import Device, Session
from pod_exporter.transform import build_batch

# Configure module logger
logger = logging.getLogger(__name__)


@dataclass
class PollContext:
    """Everything a poll cycle needs, built once at startup.

    Attributes:
        client: Pod API client
        session: Session from login (read-only after startup)
        writer: InfluxDB exporter, already connected
        metrics: Optional Prometheus exporter
        interval: Seconds between cycles
    """
    client: PodClient
    session: Session
    writer: InfluxDBExporter
    metrics: Optional[PodExporter] = None
    interval: float = 60


@dataclass
class CycleResult:
    """Outcome of one poll cycle.

    Attributes:
        ok: Whether the batch was written
        devices: Number of devices fetched
        points: Number of points written
        duration: Cycle duration in seconds
        error: Failure description when ok is False
    """
    ok: bool
    devices: int = 0
    points: int = 0
    duration: float = 0.0
    error: Optional[str] = None


class Poller:
    """Periodic fetch, transform and write loop.

    Ticks fall on start + k * interval. Each cycle schedules the next one
    when it finishes, so cycles never overlap. A cycle that overruns its
    tick is followed immediately by the next one; any further ticks missed
    during the overrun are dropped.
    """

    JOB_NAME = "poll"

    def __init__(self, context: PollContext):
        self.context = context
        self.exit_code = 0
        self._scheduler: Optional[BlockingScheduler] = None
        self._next_tick: Optional[datetime] = None

    def run_cycle(self, now: Optional[datetime] = None) -> CycleResult:
        """Execute one poll cycle.

        1. Fetch the full roster with the session token
        2. Build two points per device
        3. Write the whole batch in one call
        4. Update Prometheus metrics

        Args:
            now: Poll time (default: current UTC time)

        Returns:
            CycleResult describing the outcome. Errors are reported in the
            result rather than raised.
        """
        ctx = self.context
        start_time = time.time()
        devices: List[Device] = []
        error = None

        try:
            devices = ctx.client.fetch_devices(ctx.session.token)
            logger.info(f"Fetched full data: {len(devices)} pets")

            if now is None:
                now = datetime.now(timezone.utc)
            written = ctx.writer.write_batch(build_batch(devices, now))
        except PodError as e:
            error = f"full fetch failed: {e}"
        except DatabaseError as e:
            error = f"influxdb write failed: {e}"
        except Exception as e:
            error = f"unexpected error: {e}"
            logger.exception("Poll failed with unexpected error")

        duration = time.time() - start_time

        if error is not None:
            if ctx.metrics:
                ctx.metrics.set_poll_success(False, duration)
            return CycleResult(ok=False, devices=len(devices), duration=duration, error=error)

        if ctx.metrics:
            self._update_metrics(devices, written, now, duration)

        logger.info(f"Poll completed: {len(devices)} pets, {written} points written")
        return CycleResult(ok=True, devices=len(devices), points=written, duration=duration)

    def _update_metrics(self, devices: List[Device], written: int, now: datetime, duration: float) -> None:
        """Update Prometheus metrics after a written batch.

        Metric errors are logged only; the batch is already in InfluxDB.
        """
        metrics = self.context.metrics
        try:
            metrics.update_devices(devices, now)
            metrics.add_points_written(written)
            metrics.set_poll_success(True, duration)
        except Exception as e:
            logger.error(f"Failed to update Prometheus metrics: {e}")

    def next_run_time(self, now: Optional[datetime] = None) -> datetime:
        """Advance to the next tick and return when the next cycle should start.

        Args:
            now: Current time (default: current UTC time)

        Returns:
            The next tick, or now if that tick has already passed
        """
        if now is None:
            now = datetime.now(timezone.utc)

        interval = timedelta(seconds=self.context.interval)
        if self._next_tick is None:
            self._next_tick = now
            return now

        self._next_tick += interval
        if self._next_tick >= now:
            return self._next_tick

        # Late: run now on the oldest missed tick, drop the rest
        missed = (now - self._next_tick) // interval
        if missed:
            logger.warning(f"Poll overran by {missed} interval(s), skipping missed ticks")
        self._next_tick += missed * interval
        return now

    def _schedule_next(self) -> None:
        if self._scheduler is None:
            return
        self._scheduler.add_job(
            self._run_job,
            trigger=DateTrigger(run_date=self.next_run_time()),
            name=self.JOB_NAME,
            misfire_grace_time=None,
        )

    def _run_job(self) -> None:
        """Scheduled job: run a cycle, then schedule the next or stop everything."""
        result = self.run_cycle()
        if not result.ok:
            logger.critical(f"Poll failed, stopping: error={result.error}")
            self.exit_code = 1
            if self._scheduler is not None:
                # Called from the executor thread; waiting here would block on ourselves
                self._scheduler.shutdown(wait=False)
            return

        self._schedule_next()

    def create_scheduler(self) -> BlockingScheduler:
        """Create the scheduler with the first poll due immediately."""
        self._scheduler = BlockingScheduler()
        self._next_tick = None
        self._schedule_next()
        return self._scheduler

    def start(self) -> int:
        """Run the poll loop until a cycle fails or the process is interrupted.

        Returns:
            Exit code (0 after interrupt, 1 after a failed cycle)
        """
        scheduler = self.create_scheduler()
        logger.info(f"Starting scheduler, polling every {self.context.interval:g}s")
        try:
            scheduler.start()
        except KeyboardInterrupt:
            logger.info("Received interrupt, shutting down")
            if scheduler.running:
                scheduler.shutdown(wait=False)
        return self.exit_code
