"""apidemo - asynchronous telemetry acquisition core."""

__version__ = "0.1.0"
