"""Main entry point for Pod Exporter.

This module handles:
- Loading configuration from environment variables
- Logging in to the Pod API once at startup
- Connecting to InfluxDB and starting the Prometheus server
- Handing control to the poller and turning its outcome into an exit code
"""

import logging
import os
import sys
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from pod_exporter.client import PodClient, PodAuthError
from pod_exporter.exporter import PodExporter
from pod_exporter.influxdb_exporter import InfluxDBExporter
from pod_exporter.poller import PollContext, Poller

# Configure module logger
logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class Config:
    """Runtime configuration.

    Attributes:
        email: Pod account email
        password: Pod account password
        influx_addr: InfluxDB URL
        influx_database: InfluxDB database name
        influx_username: InfluxDB username (empty for no auth)
        influx_password: InfluxDB password
        poll_interval: Seconds between polls
        http_timeout: Timeout for Pod API and InfluxDB requests, in seconds
        exporter_port: Prometheus port (0 disables the server)
        log_level: Logging level name
    """
    email: str
    password: str
    influx_addr: str
    influx_database: str = "pod"
    influx_username: str = ""
    influx_password: str = ""
    poll_interval: int = 60
    http_timeout: float = 30.0
    exporter_port: int = 9120
    log_level: str = "INFO"


def _int_env(name: str, default: int) -> int:
    try:
        value = int(os.getenv(name, str(default)))
    except ValueError:
        logger.warning(f"Invalid {name}, using default: {default}")
        return default
    if value < 0:
        logger.warning(f"Negative {name}, using default: {default}")
        return default
    return value


def load_config() -> Optional[Config]:
    """Load configuration from environment variables.

    Required:
        POD_EMAIL: Pod account email
        POD_PASSWORD: Pod account password
        POD_INFLUX_ADDR: InfluxDB URL, e.g. http://localhost:8086

    Optional:
        POD_INFLUX_DATABASE: InfluxDB database (default: pod)
        POD_INFLUX_USERNAME / POD_INFLUX_PASSWORD: InfluxDB credentials
        POLL_INTERVAL: Seconds between polls (default: 60)
        HTTP_TIMEOUT: Request timeout in seconds (default: 30)
        EXPORTER_PORT: Prometheus port, 0 to disable (default: 9120)
        LOG_LEVEL: Logging level (default: INFO)

    Returns:
        Config if all required variables are set, None otherwise
    """
    email = os.getenv("POD_EMAIL", "")
    password = os.getenv("POD_PASSWORD", "")
    influx_addr = os.getenv("POD_INFLUX_ADDR", "")

    missing = []
    if not email:
        missing.append("POD_EMAIL")
    if not password:
        missing.append("POD_PASSWORD")
    if not influx_addr:
        missing.append("POD_INFLUX_ADDR")

    if missing:
        logger.error(f"Missing required environment variables: {', '.join(missing)}")
        return None

    poll_interval = _int_env("POLL_INTERVAL", 60)
    if poll_interval == 0:
        logger.warning("POLL_INTERVAL must be positive, using default: 60")
        poll_interval = 60

    http_timeout = _int_env("HTTP_TIMEOUT", 30)
    if http_timeout == 0:
        logger.warning("HTTP_TIMEOUT must be positive, using default: 30")
        http_timeout = 30

    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    if not isinstance(logging.getLevelName(log_level), int):
        logger.warning("Invalid LOG_LEVEL, using default: INFO")
        log_level = "INFO"

    config = Config(
        email=email,
        password=password,
        influx_addr=influx_addr,
        influx_database=os.getenv("POD_INFLUX_DATABASE", "pod") or "pod",
        influx_username=os.getenv("POD_INFLUX_USERNAME", ""),
        influx_password=os.getenv("POD_INFLUX_PASSWORD", ""),
        poll_interval=poll_interval,
        http_timeout=float(http_timeout),
        exporter_port=_int_env("EXPORTER_PORT", 9120),
        log_level=log_level,
    )

    logger.info(f"Configuration loaded: email={config.email}, "
                f"poll_interval={config.poll_interval}s, "
                f"influx_addr={config.influx_addr}, "
                f"database={config.influx_database}")
    return config


def main() -> int:
    """Main entry point.

    1. Load .env file with python-dotenv
    2. Load and validate configuration
    3. Log in to the Pod API (exit on failure)
    4. Connect to InfluxDB (exit on failure)
    5. Start Prometheus HTTP server (for operational metrics)
    6. Run the poller until a cycle fails or Ctrl+C

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    logging.basicConfig(
        level=logging.INFO,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    logger.info("Pod Exporter starting")

    load_dotenv()

    config = load_config()
    if config is None:
        logger.error("Configuration failed, exiting")
        return 1

    logging.getLogger().setLevel(config.log_level)

    client = PodClient(timeout=config.http_timeout)
    try:
        session = client.login(config.email, config.password)
    except PodAuthError as e:
        logger.critical(f"Login failed, exiting: error={e}")
        client.close()
        return 1

    logger.info(f"Got account: user_id={session.user_id}, email={session.email}, "
                f"expires={session.expires.isoformat() if session.expires else 'unknown'}")

    writer = InfluxDBExporter(
        url=config.influx_addr,
        database=config.influx_database,
        username=config.influx_username,
        password=config.influx_password,
        timeout=int(config.http_timeout * 1000),
    )
    if not writer.connect():
        logger.critical("Failed to connect to InfluxDB, exiting")
        client.close()
        return 1

    metrics = None
    if config.exporter_port:
        metrics = PodExporter(port=config.exporter_port)
        try:
            metrics.start()
        except OSError as e:
            logger.critical(f"Failed to start Prometheus server on port {config.exporter_port}, "
                            f"exiting: error={e}")
            writer.close()
            client.close()
            return 1
        logger.info(f"Prometheus metrics available at http://localhost:{config.exporter_port}/metrics")

    poller = Poller(PollContext(
        client=client,
        session=session,
        writer=writer,
        metrics=metrics,
        interval=config.poll_interval,
    ))

    try:
        exit_code = poller.start()
    finally:
        writer.close()
        client.close()

    if exit_code:
        logger.critical("Poller stopped after a failed cycle")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
