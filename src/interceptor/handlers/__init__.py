"""Built-in resource handlers."""

from .health import HealthCheck, HealthHandler, HealthStatus, health_handler

__all__ = ["HealthHandler", "HealthStatus", "HealthCheck", "health_handler"]
