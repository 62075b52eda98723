"""Transport layer for the monitoring service."""

from machine_monitor.api.client import CONNECTION_MESSAGE, ApiClient

__all__ = ["ApiClient", "CONNECTION_MESSAGE"]
