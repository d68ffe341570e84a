"""InfluxDB exporter module.

This module handles:
- Connecting to InfluxDB (1.x, through the 2.x client compatibility API)
- Converting poll points to InfluxDB points at second precision
- Writing each poll cycle's batch in a single write call
"""

import logging
from typing import List, Optional

from influxdb_client import InfluxDBClient, Point, WritePrecision
from influxdb_client.client.write_api import SYNCHRONOUS

from pod_exporter.models import TimeSeriesPoint

# Configure module logger
logger = logging.getLogger(__name__)


class DatabaseError(Exception):
    """Exception raised when InfluxDB cannot be reached or written to."""
    pass


def to_influx_point(point: TimeSeriesPoint) -> Point:
    """Convert a poll point to an InfluxDB point."""
    influx_point = Point(point.measurement)
    for key, value in point.tags.items():
        influx_point = influx_point.tag(key, value)
    for key, value in point.fields.items():
        influx_point = influx_point.field(key, value)
    return influx_point.time(point.time, WritePrecision.S)


class InfluxDBExporter:
    """InfluxDB exporter for pod telemetry.

    Writes to an InfluxDB 1.x database through the compatibility endpoints
    of influxdb-client: the database is used as the bucket and the org is
    ignored ("-").

    Measurements:
    - location: latitude, longitude, accuracy, age
    - battery: value, remaining

    Tags:
    - id: Pet identifier
    - name: Pet name

    Attributes:
        url: InfluxDB server URL
        database: InfluxDB database name
        username: Optional InfluxDB username
        password: Optional InfluxDB password
        timeout: Request timeout in milliseconds
    """

    ORG = "-"

    def __init__(
        self,
        url: str = "http://localhost:8086",
        database: str = "pod",
        username: str = "",
        password: str = "",
        timeout: int = 30_000,
    ):
        """Initialize the InfluxDB exporter.

        Args:
            url: InfluxDB server URL
            database: InfluxDB database name
            username: InfluxDB username (empty for no auth)
            password: InfluxDB password
            timeout: Request timeout in milliseconds
        """
        self.url = url
        self.database = database
        self.username = username
        self.password = password
        self.timeout = timeout
        self._client: Optional[InfluxDBClient] = None
        self._write_api = None

    @property
    def token(self) -> str:
        """1.x credentials in the "username:password" token form."""
        if self.username:
            return f"{self.username}:{self.password}"
        return ""

    def connect(self) -> bool:
        """Connect to InfluxDB.

        Returns:
            True if connection successful, False otherwise
        """
        try:
            self._client = InfluxDBClient(
                url=self.url,
                token=self.token,
                org=self.ORG,
                timeout=self.timeout,
            )
            self._write_api = self._client.write_api(write_options=SYNCHRONOUS)

            if self._client.ping():
                logger.info(f"Connected to InfluxDB at {self.url}")
                return True
            else:
                logger.error(f"InfluxDB at {self.url} did not answer ping")
                return False
        except Exception as e:
            logger.error(f"Failed to connect to InfluxDB: {e}")
            return False

    def close(self) -> None:
        """Close the InfluxDB connection."""
        if self._client:
            self._client.close()
            self._client = None
            self._write_api = None
            logger.info("InfluxDB connection closed")

    def write_batch(self, points: List[TimeSeriesPoint]) -> int:
        """Write one poll cycle's points in a single call.

        Args:
            points: Points built for the cycle

        Returns:
            Number of points written (0 if the batch was empty)

        Raises:
            RuntimeError: If not connected to InfluxDB
            DatabaseError: If the points cannot be built or written
        """
        if not self._write_api:
            raise RuntimeError("Not connected to InfluxDB. Call connect() first.")

        if not points:
            logger.warning("No points to write")
            return 0

        try:
            records = [to_influx_point(point) for point in points]
            self._write_api.write(
                bucket=self.database,
                org=self.ORG,
                record=records,
                write_precision=WritePrecision.S,
            )
        except Exception as e:
            logger.error(f"Failed to write to InfluxDB: {e}")
            raise DatabaseError(f"Write to database {self.database} failed: {e}") from e

        logger.info(f"Wrote {len(records)} points to InfluxDB database {self.database}")
        return len(records)
