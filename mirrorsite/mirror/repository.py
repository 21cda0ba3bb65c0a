"""
Repository Mirror - Keep a local checkout consistent with a remote source tree.

## Checkout lifecycle

    absent  ── clone ok ──────────────────────────────▶ synced
       └──── clone exhausted on every source ─────────▶ failed
    corrupt ── delete + clone ────────────────────────▶ synced | failed
    stale   ── recovery plan (first success wins) ────▶ synced | failed

## Recovery plan for a stale checkout

1. pull-origin          pull from the configured origin (with retry)
2. reset-remote:<name>  for each source in order: set origin, pull (with retry)
3. reclone              delete the checkout and clone_with_fallback

Remote resets are skipped when the previous failure was a local git
error (not network, not timeout), since switching remotes cannot help.

## Usage

    from mirrorsite.mirror.repository import RepositoryMirror

    mirror = RepositoryMirror.from_settings(settings, logger=sync_logger)
    state = mirror.ensure_synced()
    if state.synced:
        ...
"""

from __future__ import annotations

import functools
import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

from ..errors import (
    CommandFailed,
    CommandTimeout,
    CorruptRepository,
    GitError,
    NetworkFailure,
    SyncError,
)
from ..helpers import remove_path
from ..models.config import RetryPolicy, Settings, Source
from ..process import CommandResult, CommandRunner, run_command
from ..reliability.retry import retry_with_policy
from .state import MirrorState, SyncStatus

logger = logging.getLogger(__name__)

# stderr fragments git prints when the transport, not the repo, is at fault
NETWORK_SIGNATURES = (
    "could not resolve host",
    "could not resolve proxy",
    "unable to access",
    "failed to connect",
    "connection refused",
    "connection reset",
    "connection timed out",
    "operation timed out",
    "could not read from remote repository",
    "the remote end hung up",
    "early eof",
    "rpc failed",
    "network is unreachable",
    "ssl_error",
    "gnutls_handshake",
    "tls connection",
    "empty reply from server",
    "http/2 stream",
)

GIT_ENV = {"GIT_TERMINAL_PROMPT": "0"}

SyncFailure = Union[SyncError, CommandTimeout]


def is_network_error(output: str) -> bool:
    """True if git output looks like a transport failure."""
    lowered = output.lower()
    return any(sig in lowered for sig in NETWORK_SIGNATURES)


def _is_network_class(error: Optional[BaseException]) -> bool:
    return isinstance(error, (NetworkFailure, CommandTimeout))


@dataclass
class RecoveryStrategy:
    """One step of the stale-checkout escalation.

    ``attempt`` returns the name of the remote the checkout is now synced
    with, or raises SyncError / CommandTimeout.
    """

    name: str
    attempt: Callable[[], str]
    network_only: bool = False


class RepositoryMirror:
    """
    Owner of the local checkout and its MirrorState.

    All mutations go through ensure_synced(), which holds a lock so at
    most one is in flight.
    """

    def __init__(
        self,
        local_path: Path,
        sources: Sequence[Source],
        retry_policy: Optional[RetryPolicy] = None,
        clone_timeout: float = 600,
        pull_timeout: float = 600,
        git_timeout: float = 30,
        runner: CommandRunner = run_command,
        sleep: Callable[[float], None] = time.sleep,
        logger: Optional[logging.Logger] = None,
    ):
        if not sources:
            raise ValueError("RepositoryMirror needs at least one source")

        self.local_path = Path(local_path)
        self.sources: List[Source] = list(sources)
        self.retry_policy = retry_policy or RetryPolicy()
        self.clone_timeout = clone_timeout
        self.pull_timeout = pull_timeout
        self.git_timeout = git_timeout
        self.log = logger or logging.getLogger(__name__)

        self._runner = runner
        self._sleep = sleep
        self._lock = threading.Lock()
        self._state = MirrorState(local_path=self.local_path)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        logger: Optional[logging.Logger] = None,
        runner: CommandRunner = run_command,
        sleep: Callable[[float], None] = time.sleep,
    ) -> "RepositoryMirror":
        return cls(
            local_path=settings.paths.repo,
            sources=settings.sources,
            retry_policy=settings.sync.retry,
            clone_timeout=settings.sync.clone_timeout,
            pull_timeout=settings.sync.pull_timeout,
            git_timeout=settings.sync.git_timeout,
            runner=runner,
            sleep=sleep,
            logger=logger,
        )

    @property
    def state(self) -> MirrorState:
        """Copy of the current MirrorState."""
        return self._state.snapshot()

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def inspect(self) -> SyncStatus:
        """Classify the local path without touching the network."""
        exists = self.local_path.exists()
        valid = exists and (self.local_path / ".git").exists()
        self._state.exists = exists
        self._state.is_valid = valid

        if not exists:
            return SyncStatus.ABSENT
        if not valid:
            return SyncStatus.CORRUPT
        return SyncStatus.STALE

    def ensure_synced(self) -> MirrorState:
        """
        Bring the checkout to a consistent state.

        Never raises for sync failures: the returned state is either
        SYNCED or FAILED (with last_error set).
        """
        with self._lock:
            status = self.inspect()
            self.log.info(f"Syncing checkout at {self.local_path} (found: {status.value})")

            try:
                if status == SyncStatus.ABSENT:
                    self.log.info("Local checkout missing, creating and cloning")
                    self._reset_checkout()
                    remote = self.clone_with_fallback()
                elif status == SyncStatus.CORRUPT:
                    remote = self._heal_corrupt()
                else:
                    remote = self._recover_stale()
            except (SyncError, CommandTimeout, OSError) as e:
                self.log.error(f"Sync failed: {e}")
                self._discard_checkout()
                self._state.mark_failed(str(e))
                return self._state.snapshot()

            self._state.mark_synced(remote)
            self.log.info(f"Checkout synced (remote: {remote})")
            return self._state.snapshot()

    def clone_with_fallback(
        self,
        sources: Optional[Sequence[Source]] = None,
        policy: Optional[RetryPolicy] = None,
    ) -> str:
        """
        Clone from each source in order until one succeeds.

        Each source gets a fresh budget of ``policy.max_retries`` attempts.
        A source is never revisited after its turn.

        Returns:
            Name of the source that was cloned

        Raises:
            NetworkFailure: every source was exhausted
        """
        sources = list(sources) if sources is not None else self.sources
        policy = policy or self.retry_policy
        errors: List[str] = []

        for index, source in enumerate(sources):
            self.log.info(
                f"Cloning from {source.name} ({source.url}) [source {index + 1}/{len(sources)}]"
            )
            try:
                retry_with_policy(
                    functools.partial(self._clone_once, source),
                    policy,
                    operation=f"clone {source.name}",
                    retryable=(NetworkFailure, CommandTimeout),
                    sleep=self._sleep,
                    log=self.log,
                )
            except (SyncError, CommandTimeout) as e:
                errors.append(f"{source.name}: {e}")
                if index + 1 < len(sources):
                    self.log.warning(
                        f"Source {source.name} exhausted, falling back to {sources[index + 1].name}"
                    )
                continue

            self.log.info(f"Clone from {source.name} succeeded")
            return source.name

        raise NetworkFailure("Clone failed on every source: " + "; ".join(errors))

    def pull_with_retry(self, policy: Optional[RetryPolicy] = None) -> None:
        """
        Pull into the existing checkout, retrying transient failures.

        Does not fall back to cloning; escalation is ensure_synced's job.
        """
        policy = policy or self.retry_policy
        retry_with_policy(
            functools.partial(self._git, "pull", "--ff-only", timeout=self.pull_timeout),
            policy,
            operation="pull",
            retryable=(NetworkFailure, CommandTimeout),
            sleep=self._sleep,
            log=self.log,
        )

    def recovery_plan(self) -> List[RecoveryStrategy]:
        """Ordered escalation for a stale checkout."""
        plan = [RecoveryStrategy("pull-origin", self._pull_origin)]
        for source in self.sources:
            plan.append(
                RecoveryStrategy(
                    f"reset-remote:{source.name}",
                    functools.partial(self._reset_remote_and_pull, source),
                    network_only=True,
                )
            )
        plan.append(RecoveryStrategy("reclone", self._reclone))
        return plan

    # ------------------------------------------------------------------
    # Recovery steps
    # ------------------------------------------------------------------

    def _heal_corrupt(self) -> str:
        self.log.warning(f"{self.local_path} is not a valid git checkout, deleting and recloning")
        self._reset_checkout()
        try:
            return self.clone_with_fallback()
        except NetworkFailure as e:
            raise CorruptRepository(f"Reclone of corrupt checkout failed: {e}") from e

    def _recover_stale(self) -> str:
        last_error: Optional[SyncFailure] = None

        for strategy in self.recovery_plan():
            if strategy.network_only and last_error is not None and not _is_network_class(last_error):
                self.log.info(f"Skipping {strategy.name}: last failure was not a network failure")
                continue

            self.log.info(f"Trying {strategy.name}")
            try:
                remote = strategy.attempt()
            except (SyncError, CommandTimeout) as e:
                last_error = e
                self.log.warning(f"{strategy.name} failed: {e}")
                continue

            self.log.info(f"{strategy.name} succeeded")
            return remote

        if last_error is None:
            raise SyncError("Recovery plan is empty")
        raise last_error

    def _pull_origin(self) -> str:
        url = self._origin_url()
        self.pull_with_retry()
        return self._label_for(url)

    def _reset_remote_and_pull(self, source: Source) -> str:
        self.log.warning(f"Resetting origin to {source.name} ({source.url})")
        self._set_origin(source.url)
        self.pull_with_retry()
        return source.name

    def _reclone(self) -> str:
        self.log.warning("All pull strategies failed, deleting checkout and recloning")
        self._reset_checkout()
        return self.clone_with_fallback()

    # ------------------------------------------------------------------
    # Git helpers
    # ------------------------------------------------------------------

    def _git(self, *args: str, timeout: Optional[float] = None, cwd: Optional[Path] = None) -> CommandResult:
        """Run git, mapping CommandFailed to NetworkFailure or GitError."""
        try:
            return self._runner(
                ["git", *args],
                cwd=cwd or self.local_path,
                timeout=timeout or self.git_timeout,
                env=GIT_ENV,
                log=self.log,
            )
        except CommandFailed as e:
            if is_network_error(e.output):
                raise NetworkFailure(str(e)) from e
            raise GitError(str(e)) from e

    def _clone_once(self, source: Source) -> None:
        self._reset_checkout()
        self._git(
            "clone",
            source.url,
            str(self.local_path),
            timeout=self.clone_timeout,
            cwd=self.local_path.parent,
        )

    def _origin_url(self) -> str:
        try:
            result = self._git("remote", "get-url", "origin")
        except GitError as e:
            raise NetworkFailure(f"Remote 'origin' is unreachable: {e}") from e
        url = result.stdout.strip()
        if not url:
            raise NetworkFailure("Remote 'origin' has no URL")
        return url

    def _set_origin(self, url: str) -> None:
        try:
            self._git("remote", "set-url", "origin", url)
        except GitError:
            self._git("remote", "add", "origin", url)

    def _label_for(self, url: str) -> str:
        for source in self.sources:
            if source.url == url:
                return source.name
        return url

    # ------------------------------------------------------------------
    # Filesystem helpers
    # ------------------------------------------------------------------

    def _reset_checkout(self) -> None:
        """Leave an empty directory at local_path."""
        remove_path(self.local_path)
        self.local_path.mkdir(parents=True, exist_ok=True)

    def _discard_checkout(self) -> None:
        try:
            remove_path(self.local_path)
        except OSError as e:
            self.log.error(f"Could not remove {self.local_path}: {e}")
        self._state.exists = self.local_path.exists() or self.local_path.is_symlink()
        self._state.is_valid = False
