"""
Observability Module - Health checks.
"""

from .health import ComponentHealth, HealthChecker, HealthStatus, SystemHealth

__all__ = [
    "HealthChecker",
    "HealthStatus",
    "SystemHealth",
    "ComponentHealth",
]
