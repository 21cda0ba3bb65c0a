"""
Orchestrator - One sync-then-build cycle, isolated and single-flight.

A cycle:
1. RepositoryMirror.ensure_synced()
2. not synced → failure, no build
3. BuildPipeline.build_full()
   └─ BuildFailure(FULL) → build_minimal() exactly once
      ├─ ok → degraded_success
      └─ BuildFailure(MINIMAL) → failure
4. record the CycleResult in ServiceStatus

run_cycle() never raises. A cycle that starts while another is in
flight is skipped and returns None.

## Cycle ID Format

    C-{YYYYMMDD}T{HHMMSS}-{RANDOM}
    Example: C-20260204T020000-3FA91C

## Usage

    from mirrorsite.engine.orchestrator import Orchestrator

    orchestrator = Orchestrator.from_settings(settings)
    result = orchestrator.run_cycle()
    orchestrator.close()
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import uuid4

from ..errors import BuildFailure, BuildKind
from ..logging_config import close_logger, create_logger
from ..mirror.repository import RepositoryMirror
from ..mirror.state import SyncStatus, utc_now_iso
from ..models.config import Settings
from ..models.status import CycleRecord, ServiceStatus
from ..persistence.status_file import load_status, save_status, status_path
from ..site.pipeline import BuildPipeline

logger = logging.getLogger(__name__)


class CycleOutcome(str, Enum):
    SUCCESS = "success"
    DEGRADED_SUCCESS = "degraded_success"
    FAILURE = "failure"


@dataclass
class CycleResult:
    """Result of one cycle."""

    cycle_id: str
    started_at: str
    ended_at: Optional[str] = None
    duration_ms: int = 0

    outcome: CycleOutcome = CycleOutcome.FAILURE
    sync_status: Optional[SyncStatus] = None
    active_remote: Optional[str] = None
    build_kind: Optional[BuildKind] = None

    errors: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.outcome != CycleOutcome.FAILURE

    def to_record(self) -> CycleRecord:
        return CycleRecord(
            cycle_id=self.cycle_id,
            started_at=self.started_at,
            ended_at=self.ended_at,
            duration_ms=self.duration_ms,
            outcome=self.outcome.value,
            sync_status=self.sync_status.value if self.sync_status else None,
            build_kind=self.build_kind.value if self.build_kind else None,
            active_remote=self.active_remote,
            errors=list(self.errors),
        )

    def to_dict(self) -> Dict[str, Any]:
        return self.to_record().model_dump()


def generate_cycle_id() -> str:
    """Generate a unique cycle ID."""
    ts = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")
    suffix = uuid4().hex[:6].upper()
    return f"C-{ts}-{suffix}"


class Orchestrator:
    """Sequences the mirror and the pipeline once per cycle."""

    def __init__(
        self,
        mirror: RepositoryMirror,
        pipeline: BuildPipeline,
        status_file: Optional[Path] = None,
        logger: Optional[logging.Logger] = None,
        owned_loggers: Optional[List[logging.Logger]] = None,
    ):
        self.mirror = mirror
        self.pipeline = pipeline
        self.status_file = status_file
        self.log = logger or logging.getLogger(__name__)

        self._lock = threading.Lock()
        self._owned_loggers = list(owned_loggers or [])
        self._last_result: Optional[CycleResult] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "Orchestrator":
        """
        Build the mirror, pipeline and their loggers from settings.

        Creates the sync, build and main file loggers; close() detaches them.
        """
        sync_log = create_logger("sync", settings.logs)
        build_log = create_logger("build", settings.logs)
        main_log = create_logger("main", settings.logs)

        return cls(
            mirror=RepositoryMirror.from_settings(settings, logger=sync_log),
            pipeline=BuildPipeline.from_settings(settings, logger=build_log),
            status_file=status_path(settings.paths.state),
            logger=main_log,
            owned_loggers=[sync_log, build_log, main_log],
        )

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    @property
    def last_result(self) -> Optional[CycleResult]:
        return self._last_result

    def load_status(self) -> ServiceStatus:
        """Persisted status, or an empty one if it cannot be read."""
        if self.status_file is None:
            return ServiceStatus()
        try:
            return load_status(self.status_file)
        except Exception as e:
            self.log.warning(f"Could not read {self.status_file}: {e}")
            return ServiceStatus()

    def run_cycle(self) -> Optional[CycleResult]:
        """
        Run one cycle if none is in flight.

        Returns:
            CycleResult, or None if the cycle was skipped
        """
        if not self._lock.acquire(blocking=False):
            self.log.warning("Cycle already in progress, skipping this trigger")
            return None

        try:
            result = self._run_locked()
            self._last_result = result
            self._record(result)
            return result
        finally:
            self._lock.release()

    def _run_locked(self) -> CycleResult:
        start_time = time.time()
        result = CycleResult(cycle_id=generate_cycle_id(), started_at=utc_now_iso())
        extra = {"cycle_id": result.cycle_id}

        self.log.info(
            f"{'═' * 50}\n"
            f"  Starting Cycle {result.cycle_id}\n"
            f"{'═' * 50}",
            extra=extra,
        )

        try:
            self._sync_and_build(result)
        except Exception as e:
            self.log.exception(f"Cycle {result.cycle_id} crashed: {e}", extra=extra)
            result.errors.append(f"unexpected: {e}")
            result.outcome = CycleOutcome.FAILURE

        result.ended_at = utc_now_iso()
        result.duration_ms = int((time.time() - start_time) * 1000)

        message = (
            f"Cycle {result.cycle_id} finished: {result.outcome.value} "
            f"(sync={result.sync_status.value if result.sync_status else 'n/a'}, "
            f"build={result.build_kind.value if result.build_kind else 'n/a'}, "
            f"{result.duration_ms}ms)"
        )
        if result.outcome == CycleOutcome.FAILURE:
            self.log.error(message, extra=extra)
        else:
            self.log.info(message, extra=extra)
        return result

    def _sync_and_build(self, result: CycleResult) -> None:
        state = self.mirror.ensure_synced()
        result.sync_status = state.status
        result.active_remote = state.active_remote

        if state.status != SyncStatus.SYNCED:
            self.log.error(f"Sync ended as {state.status.value}: {state.last_error}; skipping build")
            result.errors.append(f"sync: {state.last_error}")
            result.outcome = CycleOutcome.FAILURE
            return

        try:
            build = self.pipeline.build_full()
            result.build_kind = build.kind
            result.outcome = CycleOutcome.SUCCESS
            return
        except BuildFailure as e:
            self.log.warning(f"Full build failed, falling back to minimal build: {e}")
            result.errors.append(f"build: {e}")

        try:
            build = self.pipeline.build_minimal()
        except BuildFailure as e:
            self.log.error(f"Minimal build failed: {e}")
            result.errors.append(f"build: {e}")
            result.build_kind = BuildKind.FAILED
            result.outcome = CycleOutcome.FAILURE
            return

        result.build_kind = build.kind
        result.outcome = CycleOutcome.DEGRADED_SUCCESS

    def _record(self, result: CycleResult) -> None:
        if self.status_file is None:
            return
        try:
            status = self.load_status()
            status.record(result.to_record())
            save_status(status, self.status_file)
        except Exception as e:
            self.log.error(f"Failed to persist cycle status: {e}")

    def close(self) -> None:
        """Detach the file handlers created by from_settings."""
        for log in self._owned_loggers:
            close_logger(log)
        self._owned_loggers = []
