"""
Service Status Model - What the service remembers between runs.

Persisted to state/service_status.json by mirrorsite.persistence.status_file.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

HISTORY_LIMIT = 20


class CycleRecord(BaseModel):
    """Persisted summary of one cycle."""

    cycle_id: str
    started_at: str
    ended_at: Optional[str] = None
    duration_ms: int = 0
    outcome: str
    sync_status: Optional[str] = None
    build_kind: Optional[str] = None
    active_remote: Optional[str] = None
    errors: List[str] = Field(default_factory=list)


class ServiceStatus(BaseModel):
    """Last successful sync, last cycle and recent history."""

    schema_version: int = 1
    last_success_iso: Optional[str] = None
    last_cycle: Optional[CycleRecord] = None
    history: List[CycleRecord] = Field(default_factory=list)

    def record(self, cycle: CycleRecord, limit: int = HISTORY_LIMIT) -> None:
        """
        Append a cycle, newest first, keeping at most ``limit`` entries.

        Only success and degraded_success advance last_success_iso.
        """
        self.last_cycle = cycle
        self.history = [cycle] + self.history[: max(limit - 1, 0)]
        if cycle.outcome in ("success", "degraded_success"):
            self.last_success_iso = cycle.ended_at or cycle.started_at
