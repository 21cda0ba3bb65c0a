"""
Health Check - Service health for /api/health and `mirrorsite health`.

Components:
- website          serving root has an index.html (unhealthy if not)
- checkout         local checkout exists and has .git
- last_cycle       outcome of the most recent cycle
- sync_freshness   age of the last successful sync
- logs             log directory is writable

## Usage

    from mirrorsite.observability.health import HealthChecker

    checker = HealthChecker.from_settings(settings)
    status = checker.check()

    if status.healthy:
        print("All systems operational")
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..models.config import Settings
from ..persistence.status_file import load_status, status_path

logger = logging.getLogger(__name__)


class HealthStatus(str, Enum):
    """Health status levels."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    """Health status of a single component."""

    name: str
    status: HealthStatus
    message: str = ""
    latency_ms: Optional[float] = None
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SystemHealth:
    """Overall service health."""

    status: HealthStatus
    timestamp: str
    uptime_seconds: float
    components: List[ComponentHealth]

    @property
    def healthy(self) -> bool:
        return self.status == HealthStatus.HEALTHY

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "timestamp": self.timestamp,
            "uptime_seconds": self.uptime_seconds,
            "healthy": self.healthy,
            "components": [
                {
                    "name": c.name,
                    "status": c.status.value,
                    "message": c.message,
                    "latency_ms": c.latency_ms,
                    "details": c.details,
                }
                for c in self.components
            ],
        }


def _parse_iso(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class HealthChecker:
    """
    Service health checker.

    Sync freshness is degraded once the last successful sync is older
    than ``max_sync_age_hours`` and unhealthy at three times that.
    """

    def __init__(
        self,
        repo_path: Path,
        website_path: Path,
        status_file: Path,
        log_dir: Path,
        max_sync_age_hours: float = 26.0,
    ):
        self.repo_path = Path(repo_path)
        self.website_path = Path(website_path)
        self.status_file = Path(status_file)
        self.log_dir = Path(log_dir)
        self.max_sync_age_hours = max_sync_age_hours
        self._start_time = time.time()

    @classmethod
    def from_settings(cls, settings: Settings) -> "HealthChecker":
        return cls(
            repo_path=settings.paths.repo,
            website_path=settings.paths.website,
            status_file=status_path(settings.paths.state),
            log_dir=settings.logs.dir,
        )

    def check(self) -> SystemHealth:
        """Run all health checks and return status."""
        components = [
            self._check_website(),
            self._check_checkout(),
            self._check_last_cycle(),
            self._check_sync_freshness(),
            self._check_logs(),
        ]

        statuses = [c.status for c in components]
        if HealthStatus.UNHEALTHY in statuses:
            overall = HealthStatus.UNHEALTHY
        elif HealthStatus.DEGRADED in statuses:
            overall = HealthStatus.DEGRADED
        else:
            overall = HealthStatus.HEALTHY

        return SystemHealth(
            status=overall,
            timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            uptime_seconds=time.time() - self._start_time,
            components=components,
        )

    def _check_website(self) -> ComponentHealth:
        """The serving root must have something to serve."""
        start = time.time()
        index = self.website_path / "index.html"
        if not index.is_file():
            return ComponentHealth(
                name="website",
                status=HealthStatus.UNHEALTHY,
                message=f"No index.html in {self.website_path}",
            )

        sections = sorted(p.name for p in self.website_path.iterdir() if p.is_dir())
        return ComponentHealth(
            name="website",
            status=HealthStatus.HEALTHY,
            message=f"Serving {len(sections)} sections",
            latency_ms=(time.time() - start) * 1000,
            details={"sections": sections},
        )

    def _check_checkout(self) -> ComponentHealth:
        if (self.repo_path / ".git").exists():
            return ComponentHealth(
                name="checkout",
                status=HealthStatus.HEALTHY,
                message="Local checkout present",
            )
        if self.repo_path.exists():
            message = "Local checkout has no .git (will be recloned)"
        else:
            message = "Local checkout missing (will be cloned)"
        return ComponentHealth(name="checkout", status=HealthStatus.DEGRADED, message=message)

    def _check_last_cycle(self) -> ComponentHealth:
        try:
            status = load_status(self.status_file)
        except Exception as e:
            return ComponentHealth(
                name="last_cycle",
                status=HealthStatus.DEGRADED,
                message=f"Could not read status file: {e}",
            )

        cycle = status.last_cycle
        if cycle is None:
            return ComponentHealth(
                name="last_cycle",
                status=HealthStatus.DEGRADED,
                message="No cycle recorded yet",
            )

        details = {
            "cycle_id": cycle.cycle_id,
            "outcome": cycle.outcome,
            "build_kind": cycle.build_kind,
            "ended_at": cycle.ended_at,
        }
        if cycle.outcome == "success":
            return ComponentHealth(
                name="last_cycle",
                status=HealthStatus.HEALTHY,
                message="Last cycle succeeded",
                details=details,
            )
        return ComponentHealth(
            name="last_cycle",
            status=HealthStatus.DEGRADED,
            message=f"Last cycle ended as {cycle.outcome}",
            details={**details, "errors": cycle.errors},
        )

    def _check_sync_freshness(self) -> ComponentHealth:
        """Check that syncs keep succeeding."""
        try:
            status = load_status(self.status_file)
            if status.last_success_iso is None:
                return ComponentHealth(
                    name="sync_freshness",
                    status=HealthStatus.DEGRADED,
                    message="No successful sync yet",
                )

            age_hours = (
                datetime.now(timezone.utc) - _parse_iso(status.last_success_iso)
            ).total_seconds() / 3600
            details = {"age_hours": round(age_hours, 2), "last_success": status.last_success_iso}

            if age_hours > self.max_sync_age_hours * 3:
                level = HealthStatus.UNHEALTHY
            elif age_hours > self.max_sync_age_hours:
                level = HealthStatus.DEGRADED
            else:
                level = HealthStatus.HEALTHY

            return ComponentHealth(
                name="sync_freshness",
                status=level,
                message=f"Last successful sync {age_hours:.1f} hours ago",
                details=details,
            )
        except Exception as e:
            return ComponentHealth(
                name="sync_freshness",
                status=HealthStatus.DEGRADED,
                message=f"Could not check sync freshness: {e}",
            )

    def _check_logs(self) -> ComponentHealth:
        if not self.log_dir.exists():
            return ComponentHealth(
                name="logs",
                status=HealthStatus.DEGRADED,
                message="Log directory not found",
            )
        if not os.access(self.log_dir, os.W_OK):
            return ComponentHealth(
                name="logs",
                status=HealthStatus.DEGRADED,
                message="Log directory is not writable",
            )

        files = sorted(self.log_dir.glob("*.log"))
        return ComponentHealth(
            name="logs",
            status=HealthStatus.HEALTHY,
            message="Log directory writable",
            details={
                "files": len(files),
                "size_bytes": sum(f.stat().st_size for f in files),
            },
        )
