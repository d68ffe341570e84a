from datetime import datetime, timezone

import pytest

from pod_exporter.models import Battery, Device, Location, Session


LOGIN_RESPONSE = {
    "userId": "u1",
    "email": "a@b.com",
    "expires": "2030-01-01T00:00:00Z",
    "token": "tok123",
}

FULL_RESPONSE = {
    "pets": [
        {
            "id": "p1",
            "name": "Rex",
            "batteryInfo": {"value": 80, "remaining": 50},
            "location": {
                "timestamp": "2030-01-01T00:00:00Z",
                "lat": 1.0,
                "lon": 2.0,
                "accuracy": 5.0,
            },
        }
    ]
}


@pytest.fixture
def fix_time():
    return datetime(2030, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def session(fix_time):
    return Session(user_id="u1", email="a@b.com", expires=fix_time, token="tok123")


@pytest.fixture
def device(fix_time):
    return Device(
        id="p1",
        name="Rex",
        type="dog",
        battery=Battery(status="ok", value=80, remaining=50),
        location=Location(timestamp=fix_time, latitude=1.0, longitude=2.0, accuracy=5.0),
    )
