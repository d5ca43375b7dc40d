"""
=============================================================================
HEALTH CHECK HANDLERS
=============================================================================

Resource handlers for load balancer and orchestrator probes.

    /health        all registered checks, 200 or 503
    /health/live   200 while the process can answer at all

Mount them without authorizers so probes never need credentials:

    health = HealthHandler()
    health.add_check("database", check_database)

    server.mount("/health", InterceptPipeline(health.handle))
    server.mount("/health/live", InterceptPipeline(health.liveness))

Response body (JSON):

    {"status": "healthy", "uptime_seconds": 3600,
     "checks": {"database": {"status": "healthy", "message": "OK"}}}

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict
import json
import platform
import sys
import time

from ..http.request import HTTPRequest
from ..http.status_codes import HTTPStatus
from ..intercept.capture import InterceptWriter


@dataclass
class HealthStatus:
    """Result of one dependency check."""

    healthy: bool
    message: str = "OK"
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "status": "healthy" if self.healthy else "unhealthy",
            "message": self.message,
            **self.details,
        }


HealthCheck = Callable[[], HealthStatus]


def _write_json(w: InterceptWriter, status: int, data: Dict[str, Any]) -> None:
    body = json.dumps(data).encode("utf-8")
    w.headers.set("Content-Type", "application/json")
    w.headers.set("Content-Length", str(len(body)))
    w.headers.set("Cache-Control", "no-store")
    w.set_status(status)
    w.write(body)


class HealthHandler:
    """
    Health endpoints backed by registered checks.

    Args:
        include_details: Include each check's result in the body.
        include_system_info: Include hostname, platform and Python version.
    """

    def __init__(self, include_details: bool = True, include_system_info: bool = False):
        self.include_details = include_details
        self.include_system_info = include_system_info
        self._checks: Dict[str, HealthCheck] = {}
        self._start_time = time.time()

    def add_check(self, name: str, check: HealthCheck) -> "HealthHandler":
        """
        Register a check run on every /health request. Keep it fast.

        Returns:
            Self for method chaining.
        """
        self._checks[name] = check
        return self

    def handle(self, w: InterceptWriter, request: HTTPRequest) -> None:
        """200 if every check passes, otherwise 503."""
        results = {}
        all_healthy = True

        for name, check in self._checks.items():
            try:
                status = check()
            except Exception as e:
                results[name] = {"status": "unhealthy", "error": str(e)}
                all_healthy = False
                continue
            results[name] = status.to_dict()
            all_healthy = all_healthy and status.healthy

        data: Dict[str, Any] = {
            "status": "healthy" if all_healthy else "unhealthy",
            "uptime_seconds": int(time.time() - self._start_time),
        }
        if self.include_details and results:
            data["checks"] = results
        if self.include_system_info:
            data["system"] = {
                "hostname": platform.node(),
                "platform": platform.system(),
                "python_version": sys.version.split()[0],
            }

        _write_json(w, HTTPStatus.OK if all_healthy else HTTPStatus.SERVICE_UNAVAILABLE, data)

    def liveness(self, w: InterceptWriter, request: HTTPRequest) -> None:
        _write_json(w, HTTPStatus.OK, {"status": "alive"})


def health_handler(w: InterceptWriter, request: HTTPRequest) -> None:
    """Stateless probe handler: always 200 {"status": "healthy"}."""
    _write_json(w, HTTPStatus.OK, {"status": "healthy"})
