"""
=============================================================================
HEALTH ENDPOINTS
=============================================================================

    GET /api/health         liveness; the plugin polls this to detect
                            whether the bridge is running
    GET /api/health/ready   runs the registered checks; 503 if any fails

The /api/health body is a fixed contract the plugin parses:

    {"status": "ok", "version": "1.0.0", "timestamp": "2024-03-15T10:00:00Z"}

Readiness (200 / 503):

    {
        "status": "ready",
        "checks": {
            "library": {"status": "healthy", "message": "OK", "assets": 1234}
        }
    }

=============================================================================
"""

import time
import logging
from typing import Callable, Dict, Any
from dataclasses import dataclass, field

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder, HTTPStatus
from ..media.models import utc_now_iso


logger = logging.getLogger(__name__)


@dataclass
class HealthStatus:
    """
    Health check result.

        def check_library():
            if index.snapshot is None:
                return HealthStatus(healthy=False, message="Library not loaded")
            return HealthStatus(healthy=True, details={"assets": index.asset_count})
    """

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


class HealthHandler:
    """
    Health check endpoint handler.

    Usage:
        health = HealthHandler(version="1.0.0")
        health.add_check("library", check_library)

        router.get("/api/health")(health.handle)
        router.get("/api/health/ready")(health.readiness)
    """

    def __init__(self, version: str):
        self.version = version
        self._checks: Dict[str, HealthCheck] = {}
        self._start_time = time.time()

    def add_check(self, name: str, check: HealthCheck) -> "HealthHandler":
        """
        Register a readiness check. Checks run on every /ready request,
        so keep them fast.

        Returns:
            Self for method chaining.
        """
        self._checks[name] = check
        return self

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """GET /api/health: always 200 while the process is serving."""
        return (ResponseBuilder()
            .status(HTTPStatus.OK)
            .json({
                "status": "ok",
                "version": self.version,
                "timestamp": utc_now_iso(),
            })
            .no_cache()
            .build())

    def readiness(self, request: HTTPRequest) -> HTTPResponse:
        """GET /api/health/ready: 200 if every check passes, else 503."""
        results = {}
        all_healthy = True

        for name, check in self._checks.items():
            try:
                status = check()
                results[name] = status.to_dict()
                if not status.healthy:
                    all_healthy = False
            except Exception as e:
                logger.warning(f"Health check '{name}' raised: {e}")
                results[name] = {"status": "unhealthy", "error": str(e)}
                all_healthy = False

        http_status = HTTPStatus.OK if all_healthy else HTTPStatus.SERVICE_UNAVAILABLE

        return (ResponseBuilder()
            .status(http_status)
            .json({
                "status": "ready" if all_healthy else "not ready",
                "uptime_seconds": int(self.uptime),
                "checks": results,
            })
            .no_cache()
            .build())

    @property
    def uptime(self) -> float:
        return time.time() - self._start_time
