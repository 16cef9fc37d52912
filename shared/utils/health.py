"""
Health check utilities for the Daily Discovery Feed services.
Provides dependency checks and status reporting.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import httpx
from sqlalchemy import text

from shared.app_logging.logger import get_logger
from shared.config.settings import get_settings

logger = get_logger("shared.health")


class HealthStatus(Enum):
    """Health status enumeration."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    DEGRADED = "degraded"
    UNKNOWN = "unknown"


@dataclass
class HealthCheck:
    """Individual health check result."""

    name: str
    status: HealthStatus
    message: str
    response_time_ms: Optional[float] = None
    details: Optional[Dict[str, Any]] = None
    timestamp: datetime = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now(timezone.utc)


class HealthChecker:
    """Runs registered dependency checks for one service."""

    def __init__(self, service_name: str, session_factory: Optional[Callable] = None):
        self.service_name = service_name
        self.session_factory = session_factory
        self.logger = get_logger(f"{service_name}.health")
        self.checks: List[Callable[[], HealthCheck]] = []
        self.settings = get_settings()

    def add_check(self, check_func: Callable[[], HealthCheck]):
        """Add a health check function."""
        self.checks.append(check_func)

    def check_database(self) -> HealthCheck:
        """Check database connectivity."""
        start_time = datetime.now()
        try:
            session_factory = self.session_factory
            if session_factory is None:
                from shared.database.session import SessionLocal as session_factory

            with session_factory() as session:
                session.execute(text("SELECT 1"))

            response_time = (datetime.now() - start_time).total_seconds() * 1000
            return HealthCheck(
                name="database",
                status=HealthStatus.HEALTHY,
                message="Database connection successful",
                response_time_ms=response_time,
            )
        except Exception as e:
            response_time = (datetime.now() - start_time).total_seconds() * 1000
            return HealthCheck(
                name="database",
                status=HealthStatus.UNHEALTHY,
                message=f"Database connection failed: {str(e)}",
                response_time_ms=response_time,
            )

    def check_http_endpoint(self, url: str, name: str = "http_endpoint") -> HealthCheck:
        """Check HTTP endpoint connectivity.

        An unreachable provider degrades the service rather than failing it:
        generation still succeeds with the remaining sources.
        """
        start_time = datetime.now()
        try:
            with httpx.Client(
                timeout=5.0, headers={"User-Agent": self.settings.service.user_agent}
            ) as client:
                response = client.get(url)
                response.raise_for_status()

            response_time = (datetime.now() - start_time).total_seconds() * 1000
            return HealthCheck(
                name=name,
                status=HealthStatus.HEALTHY,
                message=f"HTTP endpoint {url} is reachable",
                response_time_ms=response_time,
            )
        except Exception as e:
            response_time = (datetime.now() - start_time).total_seconds() * 1000
            return HealthCheck(
                name=name,
                status=HealthStatus.DEGRADED,
                message=f"HTTP endpoint {url} failed: {str(e)}",
                response_time_ms=response_time,
            )

    def run_all_checks(self) -> Dict[str, Any]:
        """Run all registered health checks."""
        results = []
        overall_status = HealthStatus.HEALTHY

        for check_func in self.checks:
            try:
                result = check_func()
                results.append(result)

                if result.status == HealthStatus.UNHEALTHY:
                    overall_status = HealthStatus.UNHEALTHY
                elif (
                    result.status == HealthStatus.DEGRADED
                    and overall_status == HealthStatus.HEALTHY
                ):
                    overall_status = HealthStatus.DEGRADED

            except Exception as e:
                error_result = HealthCheck(
                    name=getattr(check_func, "__name__", "check"),
                    status=HealthStatus.UNHEALTHY,
                    message=f"Health check failed with exception: {str(e)}",
                )
                results.append(error_result)
                overall_status = HealthStatus.UNHEALTHY

        return {
            "service": self.service_name,
            "status": overall_status.value,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "checks": [
                {
                    "name": check.name,
                    "status": check.status.value,
                    "message": check.message,
                    "response_time_ms": check.response_time_ms,
                    "details": check.details,
                    "timestamp": check.timestamp.isoformat(),
                }
                for check in results
            ],
        }


def create_feed_api_health_checker(session_factory: Optional[Callable] = None) -> HealthChecker:
    """Database plus the providers that every feed profile depends on."""
    checker = HealthChecker("feed_api", session_factory=session_factory)
    checker.add_check(checker.check_database)

    settings = get_settings()
    providers = {
        "wikipedia": f"{settings.pipeline.wikipedia_base_url}/feed/onthisday/events/01/01",
    }
    if settings.pipeline.profile != "onthisday":
        providers["hacker_news"] = "https://hacker-news.firebaseio.com/v0/topstories.json"
    for name, url in providers.items():
        checker.add_check(lambda url=url, name=name: checker.check_http_endpoint(url, name))
    return checker
