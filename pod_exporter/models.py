"""Pod API data model module.

This module handles:
- Decoding Pod API login and roster responses into dataclasses
- Parsing the API's RFC 3339 timestamps into timezone-aware datetimes
- Defining the time-series point written to InfluxDB
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

# The API sends up to nanosecond fractions; fromisoformat wants exactly six digits
_FRACTION_RE = re.compile(r"\.(\d+)")


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp into a timezone-aware datetime.

    Args:
        value: Timestamp string, e.g. "2030-01-01T00:00:00Z"

    Returns:
        Aware datetime. Naive input is assumed to be UTC.

    Raises:
        ValueError: If the value is not a valid timestamp

    Example:
        >>> parse_timestamp("2030-01-01T00:00:00Z")
        datetime.datetime(2030, 1, 1, 0, 0, tzinfo=datetime.timezone.utc)
    """
    if not isinstance(value, str) or not value:
        raise ValueError(f"Invalid timestamp: {value!r}")

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text)

    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _int_field(data: Dict[str, Any], key: str) -> int:
    """Read a JSON integer, 0 if absent. Fractions and strings are rejected."""
    value = data.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Expected an integer for '{key}', got {value!r}")
    return value


def _float_field(data: Dict[str, Any], key: str) -> float:
    """Read a JSON number as float, 0.0 if absent. Strings are rejected."""
    value = data.get(key)
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Expected a number for '{key}', got {value!r}")
    return float(value)


@dataclass
class Session:
    """Authenticated Pod API session.

    Attributes:
        user_id: Account identifier
        email: Account email
        expires: When the token expires (aware datetime)
        token: Opaque token sent verbatim in the authorization header
    """
    user_id: str
    email: str
    expires: Optional[datetime]
    token: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        expires = data.get("expires")
        return cls(
            user_id=data.get("userId") or "",
            email=data.get("email") or "",
            expires=parse_timestamp(expires) if expires else None,
            token=data.get("token") or "",
        )


@dataclass
class Battery:
    """Battery state reported by a pod.

    Attributes:
        status: Status label from the API
        value: Raw battery value
        remaining: Remaining charge
    """
    status: str = ""
    value: int = 0
    remaining: int = 0

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Battery":
        data = data or {}
        return cls(
            status=data.get("status") or "",
            value=_int_field(data, "value"),
            remaining=_int_field(data, "remaining"),
        )


@dataclass
class Location:
    """Last GPS fix reported by a pod.

    Attributes:
        timestamp: Time of the fix (None if the API sent none)
        latitude: Latitude in degrees
        longitude: Longitude in degrees
        accuracy: Accuracy radius
    """
    timestamp: Optional[datetime] = None
    latitude: float = 0.0
    longitude: float = 0.0
    accuracy: float = 0.0

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Location":
        data = data or {}
        timestamp = data.get("timestamp")
        return cls(
            timestamp=parse_timestamp(timestamp) if timestamp else None,
            latitude=_float_field(data, "lat"),
            longitude=_float_field(data, "lon"),
            accuracy=_float_field(data, "accuracy"),
        )


@dataclass
class Device:
    """A tracked pet and its pod telemetry.

    Attributes:
        id: Pet identifier (used as the `id` tag)
        name: Pet display name (used as the `name` tag)
        type: Pet type label
        battery: Battery snapshot
        location: Location snapshot
    """
    id: str
    name: str
    type: str = ""
    battery: Battery = field(default_factory=Battery)
    location: Location = field(default_factory=Location)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Device":
        battery = data.get("batteryInfo")
        if battery is None:
            # Older payloads nest the battery under the pod object
            battery = (data.get("pod") or {}).get("batteryInfo")

        return cls(
            id=data.get("id") or "",
            name=data.get("name") or "",
            type=data.get("type") or "",
            battery=Battery.from_dict(battery),
            location=Location.from_dict(data.get("location")),
        )


def parse_roster(payload: Dict[str, Any]) -> List[Device]:
    """Decode a /users/me/full response into devices.

    Args:
        payload: Decoded JSON object with a "pets" list

    Returns:
        Devices in API response order (empty if there are no pets)

    Raises:
        ValueError: If the payload is not shaped like a roster
    """
    if not isinstance(payload, dict):
        raise ValueError(f"Expected a JSON object, got {type(payload).__name__}")

    pets = payload.get("pets") or []
    if not isinstance(pets, list):
        raise ValueError(f"Expected 'pets' to be a list, got {type(pets).__name__}")

    return [Device.from_dict(pet) for pet in pets]


@dataclass(frozen=True)
class TimeSeriesPoint:
    """One measurement destined for InfluxDB.

    Attributes:
        measurement: Measurement name ("location" or "battery")
        tags: Tag set
        fields: Field set
        time: Point timestamp (aware datetime)
    """
    measurement: str
    tags: Dict[str, str]
    fields: Dict[str, Union[int, float]]
    time: datetime
