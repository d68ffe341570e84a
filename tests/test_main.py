"""
Unit tests for configuration loading and startup.
"""
from unittest.mock import Mock, patch

import pytest

from pod_exporter import main as main_module
from pod_exporter.client import PodAuthError
from pod_exporter.main import load_config, main


REQUIRED_ENV = {
    "POD_EMAIL": "a@b.com",
    "POD_PASSWORD": "secret",
    "POD_INFLUX_ADDR": "http://influx:8086",
}

OPTIONAL_ENV = [
    "POD_INFLUX_DATABASE",
    "POD_INFLUX_USERNAME",
    "POD_INFLUX_PASSWORD",
    "POLL_INTERVAL",
    "HTTP_TIMEOUT",
    "EXPORTER_PORT",
    "LOG_LEVEL",
]


@pytest.fixture
def env(monkeypatch):
    """Set the required variables and clear the optional ones."""
    for name in OPTIONAL_ENV:
        monkeypatch.delenv(name, raising=False)
    for name, value in REQUIRED_ENV.items():
        monkeypatch.setenv(name, value)
    return monkeypatch


class TestLoadConfig:
    """Test suite for load_config."""

    def test_defaults(self, env):
        """Test defaults when only required variables are set."""
        config = load_config()

        assert config.email == "a@b.com"
        assert config.password == "secret"
        assert config.influx_addr == "http://influx:8086"
        assert config.influx_database == "pod"
        assert config.poll_interval == 60
        assert config.http_timeout == 30.0
        assert config.exporter_port == 9120
        assert config.log_level == "INFO"

    @pytest.mark.parametrize("missing", sorted(REQUIRED_ENV))
    def test_missing_required(self, env, missing):
        """Test each required variable is enforced."""
        env.delenv(missing)
        assert load_config() is None

    def test_overrides(self, env):
        """Test optional variables are read."""
        env.setenv("POD_INFLUX_DATABASE", "pets")
        env.setenv("POLL_INTERVAL", "120")
        env.setenv("HTTP_TIMEOUT", "10")
        env.setenv("EXPORTER_PORT", "0")
        env.setenv("LOG_LEVEL", "debug")

        config = load_config()

        assert config.influx_database == "pets"
        assert config.poll_interval == 120
        assert config.http_timeout == 10.0
        assert config.exporter_port == 0
        assert config.log_level == "DEBUG"

    @pytest.mark.parametrize("value", ["abc", "-5", "0"])
    def test_invalid_interval_uses_default(self, env, value):
        """Test bad poll intervals fall back to 60 seconds."""
        env.setenv("POLL_INTERVAL", value)
        assert load_config().poll_interval == 60

    def test_invalid_log_level(self, env):
        """Test unknown log levels fall back to INFO."""
        env.setenv("LOG_LEVEL", "chatty")
        assert load_config().log_level == "INFO"


@pytest.fixture
def startup(env):
    """Patch the collaborators main() builds."""
    env.setenv("EXPORTER_PORT", "0")
    with patch.object(main_module, "load_dotenv"), \
            patch.object(main_module, "PodClient") as client_cls, \
            patch.object(main_module, "InfluxDBExporter") as writer_cls, \
            patch.object(main_module, "Poller") as poller_cls:
        writer_cls.return_value.connect.return_value = True
        poller_cls.return_value.start.return_value = 0
        yield Mock(client=client_cls.return_value,
                   writer=writer_cls.return_value,
                   poller_cls=poller_cls)


class TestMain:
    """Test suite for main."""

    def test_missing_config_exits(self, env):
        """Test main exits 1 without configuration."""
        env.delenv("POD_EMAIL")
        with patch.object(main_module, "load_dotenv"):
            assert main() == 1

    def test_login_failure_exits_before_polling(self, startup):
        """Test a failed login stops startup before the poll loop."""
        startup.client.login.side_effect = PodAuthError("Login failed: 401")

        assert main() == 1

        startup.poller_cls.assert_not_called()
        startup.writer.connect.assert_not_called()

    def test_influx_failure_exits(self, startup):
        """Test an unreachable InfluxDB stops startup."""
        startup.writer.connect.return_value = False

        assert main() == 1

        startup.poller_cls.assert_not_called()

    def test_metrics_port_in_use_exits(self, startup, env):
        """Test a Prometheus bind failure closes connections and exits."""
        env.setenv("EXPORTER_PORT", "9120")
        with patch.object(main_module, "PodExporter") as exporter_cls:
            exporter_cls.return_value.start.side_effect = OSError("Address already in use")

            assert main() == 1

        startup.poller_cls.assert_not_called()
        startup.writer.close.assert_called_once()
        startup.client.close.assert_called_once()

    def test_runs_poller(self, startup):
        """Test main hands the session to the poller and returns its exit code."""
        startup.poller_cls.return_value.start.return_value = 1

        assert main() == 1

        context = startup.poller_cls.call_args.args[0]
        assert context.session is startup.client.login.return_value
        assert context.writer is startup.writer
        assert context.metrics is None
        assert context.interval == 60
        startup.writer.close.assert_called_once()
        startup.client.close.assert_called_once()
