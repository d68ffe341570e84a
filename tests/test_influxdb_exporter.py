"""
Unit tests for the InfluxDB exporter.
"""
from datetime import timedelta
from unittest.mock import patch

import pytest
from influxdb_client import WritePrecision

from pod_exporter.influxdb_exporter import DatabaseError, InfluxDBExporter, to_influx_point
from pod_exporter.transform import build_batch


@pytest.fixture
def mock_client_cls():
    """Patch InfluxDBClient with a mock whose ping succeeds."""
    with patch("pod_exporter.influxdb_exporter.InfluxDBClient") as cls:
        cls.return_value.ping.return_value = True
        yield cls


@pytest.fixture
def exporter(mock_client_cls):
    exporter = InfluxDBExporter(url="http://influx:8086", database="pod")
    assert exporter.connect()
    return exporter


@pytest.fixture
def write_api(mock_client_cls):
    return mock_client_cls.return_value.write_api.return_value


class TestToInfluxPoint:
    """Test suite for point conversion."""

    def test_line_protocol(self, device, fix_time):
        """Test tags, typed fields and second-precision timestamp."""
        location, battery = build_batch([device], fix_time + timedelta(seconds=300))

        location_line = to_influx_point(location).to_line_protocol()
        assert location_line.startswith("location,id=p1,name=Rex ")
        assert "age=300" in location_line
        assert "latitude=1" in location_line
        assert location_line.endswith(" 1893456300")

        battery_line = to_influx_point(battery).to_line_protocol()
        assert battery_line.startswith("battery,id=p1,name=Rex ")
        assert "value=80i" in battery_line
        assert "remaining=50i" in battery_line
        assert battery_line.endswith(" 1893456300")


class TestConnect:
    """Test suite for connect and close."""

    def test_connect_uses_compat_settings(self, mock_client_cls):
        """Test the client is built for InfluxDB 1.x compatibility."""
        exporter = InfluxDBExporter(url="http://influx:8086", timeout=5000)

        assert exporter.connect() is True
        mock_client_cls.assert_called_once_with(
            url="http://influx:8086", token="", org="-", timeout=5000
        )

    def test_credentials_token(self):
        """Test 1.x credentials are passed as username:password."""
        exporter = InfluxDBExporter(username="pod", password="secret")
        assert exporter.token == "pod:secret"

    def test_ping_fails(self, mock_client_cls):
        """Test connect reports failure when ping fails."""
        mock_client_cls.return_value.ping.return_value = False
        assert InfluxDBExporter().connect() is False

    def test_client_raises(self, mock_client_cls):
        """Test connect reports failure when the client cannot be built."""
        mock_client_cls.side_effect = ValueError("bad url")
        assert InfluxDBExporter().connect() is False

    def test_close(self, exporter, mock_client_cls):
        """Test close releases the client."""
        exporter.close()
        mock_client_cls.return_value.close.assert_called_once()
        with pytest.raises(RuntimeError):
            exporter.write_batch([])


class TestWriteBatch:
    """Test suite for write_batch."""

    def test_single_write_call(self, exporter, write_api, device, fix_time):
        """Test the whole batch goes out in one call at second precision."""
        batch = build_batch([device, device], fix_time)

        assert exporter.write_batch(batch) == 4

        write_api.write.assert_called_once()
        kwargs = write_api.write.call_args.kwargs
        assert kwargs["bucket"] == "pod"
        assert kwargs["org"] == "-"
        assert kwargs["write_precision"] == WritePrecision.S
        assert len(kwargs["record"]) == 4

    def test_empty_batch_skipped(self, exporter, write_api):
        """Test an empty batch is not written."""
        assert exporter.write_batch([]) == 0
        write_api.write.assert_not_called()

    def test_write_failure(self, exporter, write_api, device, fix_time):
        """Test write errors are raised as DatabaseError."""
        write_api.write.side_effect = ConnectionError("influx down")
        with pytest.raises(DatabaseError):
            exporter.write_batch(build_batch([device], fix_time))

    def test_not_connected(self):
        """Test writing before connect raises RuntimeError."""
        with pytest.raises(RuntimeError):
            InfluxDBExporter().write_batch([])
