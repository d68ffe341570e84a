"""Pod tracker InfluxDB exporter package.

A small service that logs in to the Pod pet tracker API, polls the pet
roster every minute, and writes GPS location and battery points to InfluxDB.
"""

__version__ = "0.1.0"
