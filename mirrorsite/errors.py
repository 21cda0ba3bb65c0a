"""
Errors - Typed failure kinds for the sync and build engine.

Every failure the engine can classify has its own type so that the
retry, fallback and degradation logic can branch on kind rather than
on message text.

    MirrorSiteError
    ├── CommandFailed          external command exited non-zero
    ├── CommandTimeout         external command exceeded its timeout
    ├── SyncError
    │   ├── NetworkFailure     clone/pull transport errors
    │   ├── CorruptRepository  checkout lacks version-control metadata
    │   └── GitError           any other git failure
    ├── InstallFailure
    ├── BuildFailure           kind = full | minimal
    ├── LinkRewriteFailure
    └── ConfigError
        └── ScheduleError
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional, Sequence


class MirrorSiteError(Exception):
    """Base class for all engine errors."""


class CommandFailed(MirrorSiteError):
    """An external command exited with a non-zero status."""

    def __init__(
        self,
        cmd: Sequence[str],
        returncode: int,
        stdout: str = "",
        stderr: str = "",
    ):
        self.cmd = list(cmd)
        self.returncode = returncode
        self.stdout = stdout or ""
        self.stderr = stderr or ""
        detail = self.stderr.strip() or self.stdout.strip() or "no output"
        super().__init__(
            f"Command failed ({returncode}): {' '.join(self.cmd)}: {detail[:500]}"
        )

    @property
    def output(self) -> str:
        return "\n".join(part for part in (self.stdout, self.stderr) if part)


class CommandTimeout(MirrorSiteError):
    """An external command was killed after exceeding its timeout."""

    def __init__(
        self,
        cmd: Sequence[str],
        timeout: float,
        stdout: str = "",
        stderr: str = "",
    ):
        self.cmd = list(cmd)
        self.timeout = timeout
        self.stdout = stdout or ""
        self.stderr = stderr or ""
        super().__init__(f"Command timed out after {timeout:g}s: {' '.join(self.cmd)}")

    @property
    def output(self) -> str:
        return "\n".join(part for part in (self.stdout, self.stderr) if part)


class SyncError(MirrorSiteError):
    """Base class for repository synchronization failures."""


class NetworkFailure(SyncError):
    """Clone or pull could not reach the remote."""


class CorruptRepository(SyncError):
    """The local path exists but is not a usable checkout."""


class GitError(SyncError):
    """A git command failed for a reason other than the transport."""


class InstallFailure(MirrorSiteError):
    """Dependency installation failed with every install profile."""


class BuildKind(str, Enum):
    """Which build path produced (or failed to produce) the artifacts."""

    FULL = "full"
    MINIMAL = "minimal"
    FAILED = "failed"


class BuildFailure(MirrorSiteError):
    """A build path could not produce a servable artifact set."""

    def __init__(
        self,
        kind: BuildKind,
        message: str,
        step: Optional[str] = None,
        diagnostics: Optional[List[str]] = None,
    ):
        self.kind = kind
        self.step = step
        self.diagnostics = diagnostics or []
        prefix = f"{kind.value} build failed"
        if step:
            prefix += f" at {step}"
        super().__init__(f"{prefix}: {message}")


class LinkRewriteFailure(MirrorSiteError):
    """A produced document could not be read or rewritten."""


class ConfigError(MirrorSiteError):
    """Configuration could not be loaded or validated."""


class ScheduleError(ConfigError):
    """A schedule expression is malformed."""
