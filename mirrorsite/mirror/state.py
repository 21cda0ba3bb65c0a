"""
Mirror State - Snapshot of the local checkout as RepositoryMirror last saw it.

Only RepositoryMirror mutates a MirrorState; everyone else receives
copies via snapshot().
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional


class SyncStatus(str, Enum):
    """Checkout lifecycle states."""

    ABSENT = "absent"      # local path does not exist
    CORRUPT = "corrupt"    # path exists without .git
    STALE = "stale"        # valid checkout, not yet pulled this cycle
    SYNCED = "synced"      # consistent with a remote
    FAILED = "failed"      # every recovery path exhausted


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class MirrorState:
    """State of the local checkout."""

    local_path: Path
    exists: bool = False
    is_valid: bool = False
    active_remote: Optional[str] = None
    last_sync_iso: Optional[str] = None
    last_sync_outcome: SyncStatus = SyncStatus.ABSENT
    last_success_iso: Optional[str] = None
    last_error: Optional[str] = None

    @property
    def status(self) -> SyncStatus:
        return self.last_sync_outcome

    @property
    def synced(self) -> bool:
        return self.last_sync_outcome == SyncStatus.SYNCED

    def mark_synced(self, remote: str) -> None:
        now = utc_now_iso()
        self.exists = True
        self.is_valid = True
        self.active_remote = remote
        self.last_sync_iso = now
        self.last_success_iso = now
        self.last_sync_outcome = SyncStatus.SYNCED
        self.last_error = None

    def mark_failed(self, error: str) -> None:
        self.last_sync_iso = utc_now_iso()
        self.last_sync_outcome = SyncStatus.FAILED
        self.last_error = error

    def snapshot(self) -> "MirrorState":
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["local_path"] = str(self.local_path)
        data["last_sync_outcome"] = self.last_sync_outcome.value
        return data
