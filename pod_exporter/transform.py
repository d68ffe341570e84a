"""Point transformer module.

Converts pod telemetry into the two InfluxDB measurements written per pet:
- location: latitude, longitude, accuracy, age (seconds since the fix)
- battery: value, remaining

Both points are tagged with the pet id and name and timestamped at the time
of the poll, not the time of the fix.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional

from pod_exporter.models import Device, TimeSeriesPoint


def _tags(device: Device) -> Dict[str, str]:
    return {"id": device.id, "name": device.name}


def location_point(device: Device, now: Optional[datetime] = None) -> TimeSeriesPoint:
    """Build the location point for a device.

    Args:
        device: Device from the roster
        now: Poll time (default: current UTC time)

    Returns:
        Point for the "location" measurement. The age field is omitted when
        the device reported no fix timestamp.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    location = device.location
    fields = {
        "latitude": location.latitude,
        "longitude": location.longitude,
        "accuracy": location.accuracy,
    }
    if location.timestamp is not None:
        fields["age"] = (now - location.timestamp).total_seconds()

    return TimeSeriesPoint("location", _tags(device), fields, now)


def battery_point(device: Device, now: Optional[datetime] = None) -> TimeSeriesPoint:
    """Build the battery point for a device."""
    if now is None:
        now = datetime.now(timezone.utc)

    fields = {
        "value": device.battery.value,
        "remaining": device.battery.remaining,
    }
    return TimeSeriesPoint("battery", _tags(device), fields, now)


def device_points(device: Device, now: Optional[datetime] = None) -> List[TimeSeriesPoint]:
    """Build both points for a device, location first."""
    if now is None:
        now = datetime.now(timezone.utc)
    return [location_point(device, now), battery_point(device, now)]


def build_batch(devices: List[Device], now: Optional[datetime] = None) -> List[TimeSeriesPoint]:
    """Build the batch for one poll cycle.

    Every point in the batch shares the same timestamp.

    Args:
        devices: Devices in roster order
        now: Poll time (default: current UTC time)

    Returns:
        List of 2 * len(devices) points
    """
    if now is None:
        now = datetime.now(timezone.utc)

    batch: List[TimeSeriesPoint] = []
    for device in devices:
        batch.extend(device_points(device, now))
    return batch
