"""
Health checker for the service's dependencies.

Performs readiness checks for:
- Hosted auth provider reachability
- Audit sink availability
"""

import asyncio
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import aiohttp
import structlog

from ..config import Settings
from .provider import AuthProvider

logger = structlog.get_logger(__name__)


@dataclass
class HealthCheck:
    """Individual health check result."""
    name: str
    status: str  # "healthy", "unhealthy"
    message: str
    details: Dict[str, Any]
    last_check: float


@dataclass
class HealthStatus:
    """Overall health status."""
    is_healthy: bool
    checks: Dict[str, HealthCheck]
    failed_checks: List[str]
    timestamp: float


class HealthChecker:
    """
    Readiness checker.

    Monitors:
    - Provider: GET {supabase_url}/auth/v1/health (mock provider is always healthy)
    - Audit sink: the file sink's directory must be writable
    """

    def __init__(self, settings: Settings, provider: AuthProvider):
        self.settings = settings
        self.provider = provider
        self._session: Optional[aiohttp.ClientSession] = None

        logger.info("Health Checker initialized")

    async def start(self) -> None:
        """Start the health checker."""
        if self.provider.is_mock:
            return
        self._session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.settings.supabase.health_timeout_seconds)
        )
        logger.info("Health Checker started")

    async def stop(self) -> None:
        """Stop the health checker."""
        if self._session:
            await self._session.close()
            self._session = None
        logger.info("Health Checker stopped")

    async def check_all(self) -> HealthStatus:
        """Run all checks in parallel and combine them."""
        checks = {}
        failed_checks = []

        check_results = await asyncio.gather(
            self._check_provider(),
            asyncio.to_thread(self._check_audit_sink),
            return_exceptions=True,
        )

        check_names = ["provider", "audit"]
        for name, result in zip(check_names, check_results):
            if isinstance(result, BaseException):
                checks[name] = HealthCheck(
                    name=name,
                    status="unhealthy",
                    message=f"Check failed: {str(result)}",
                    details={"error": str(result), "error_type": type(result).__name__},
                    last_check=time.time(),
                )
                failed_checks.append(name)
            else:
                checks[name] = result
                if result.status != "healthy":
                    failed_checks.append(name)

        return HealthStatus(
            is_healthy=not failed_checks,
            checks=checks,
            failed_checks=failed_checks,
            timestamp=time.time(),
        )

    async def _check_provider(self) -> HealthCheck:
        """Check the hosted auth provider is reachable."""
        if self.provider.is_mock:
            return HealthCheck(
                name="provider",
                status="healthy",
                message="Mock provider in use",
                details={"provider": self.provider.name},
                last_check=time.time(),
            )

        if not self._session:
            return HealthCheck(
                name="provider",
                status="unhealthy",
                message="Health checker not started",
                details={},
                last_check=time.time(),
            )

        health_url = f"{self.settings.supabase.url.rstrip('/')}/auth/v1/health"
        headers = {"apikey": self.settings.supabase.service_key}
        started = time.perf_counter()

        try:
            async with self._session.get(health_url, headers=headers) as response:
                elapsed_ms = int((time.perf_counter() - started) * 1000)
                if response.status == 200:
                    return HealthCheck(
                        name="provider",
                        status="healthy",
                        message="Provider is reachable",
                        details={
                            "url": health_url,
                            "status_code": response.status,
                            "response_time_ms": elapsed_ms,
                        },
                        last_check=time.time(),
                    )
                return HealthCheck(
                    name="provider",
                    status="unhealthy",
                    message=f"Provider returned status {response.status}",
                    details={"url": health_url, "status_code": response.status},
                    last_check=time.time(),
                )

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning("Provider connectivity check failed", error=str(e))
            return HealthCheck(
                name="provider",
                status="unhealthy",
                message=f"Cannot reach provider: {str(e) or type(e).__name__}",
                details={"url": health_url, "error_type": type(e).__name__},
                last_check=time.time(),
            )

    def _check_audit_sink(self) -> HealthCheck:
        """The file sink needs a writable directory; other sinks have nothing local to check."""
        sink = self.settings.audit_sink
        if sink != "file":
            return HealthCheck(
                name="audit",
                status="healthy",
                message=f"Audit sink '{sink}' ready",
                details={"sink": sink},
                last_check=time.time(),
            )

        directory = self.settings.audit.file_path.resolve().parent
        writable = directory.is_dir() and os.access(directory, os.W_OK)
        return HealthCheck(
            name="audit",
            status="healthy" if writable else "unhealthy",
            message="Audit file directory writable" if writable else "Audit file directory not writable",
            details={"sink": sink, "path": str(directory)},
            last_check=time.time(),
        )
