"""
Process Runner - Bounded execution of external commands.

Every external command (git, npm) goes through run_command so that it
always carries an explicit timeout and its output is always captured.

## Outcomes

- exit 0          → CommandResult
- exit != 0       → CommandFailed (stdout/stderr retained)
- timeout         → CommandTimeout (process group killed, partial output retained)
- not executable  → CommandFailed with returncode 127

## Usage

    from mirrorsite.process import run_command

    result = run_command(["git", "pull"], cwd=repo, timeout=600)
    print(result.stdout)
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from .errors import CommandFailed, CommandTimeout

logger = logging.getLogger(__name__)

KILL_GRACE_SECONDS = 5


@dataclass
class CommandResult:
    """Captured result of a successful command."""

    cmd: List[str]
    returncode: int
    stdout: str
    stderr: str
    duration_ms: int = 0

    def transcript(self) -> str:
        """Human-readable record for build diagnostics."""
        lines = [f"$ {' '.join(self.cmd)} (exit {self.returncode}, {self.duration_ms}ms)"]
        if self.stdout.strip():
            lines.append(self.stdout.rstrip())
        if self.stderr.strip():
            lines.append(self.stderr.rstrip())
        return "\n".join(lines)


# Signature shared by run_command and test doubles.
CommandRunner = Callable[..., CommandResult]


def _decode(data: Union[str, bytes, None]) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


def run_command(
    cmd: Sequence[str],
    cwd: Optional[Path] = None,
    timeout: float = 600,
    env: Optional[Dict[str, str]] = None,
    log: Optional[logging.Logger] = None,
) -> CommandResult:
    """
    Run a command under a timeout and classify the outcome.

    Args:
        cmd: Argument vector (no shell)
        cwd: Working directory
        timeout: Seconds before the child is killed
        env: Extra environment variables merged over os.environ
        log: Logger to report to (defaults to this module's logger)

    Returns:
        CommandResult on exit status 0

    Raises:
        CommandFailed: non-zero exit, or the executable is missing
        CommandTimeout: the command exceeded ``timeout``
    """
    log = log or logger
    argv = [str(part) for part in cmd]
    log.info(f"Running: {' '.join(argv)} (cwd={cwd or os.getcwd()}, timeout={timeout:g}s)")

    full_env = None
    if env:
        full_env = {**os.environ, **env}

    start = time.time()
    try:
        proc = subprocess.Popen(
            argv,
            cwd=str(cwd) if cwd else None,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            env=full_env,
            start_new_session=True,
        )
    except FileNotFoundError as e:
        log.error(f"Command not found: {argv[0]}")
        raise CommandFailed(argv, 127, "", str(e)) from e

    try:
        stdout, stderr = proc.communicate(timeout=timeout)
    except subprocess.TimeoutExpired as e:
        log.error(f"Command timed out after {timeout:g}s: {' '.join(argv)}")
        stdout, stderr = _kill_group(proc, e)
        raise CommandTimeout(argv, timeout, stdout, stderr) from e
    except BaseException:
        _kill_group(proc)
        raise

    duration_ms = int((time.time() - start) * 1000)

    if proc.returncode != 0:
        error = CommandFailed(argv, proc.returncode, stdout or "", stderr or "")
        log.error(str(error))
        raise error

    log.info(f"Command succeeded in {duration_ms}ms: {' '.join(argv)}")
    return CommandResult(
        cmd=argv,
        returncode=proc.returncode,
        stdout=stdout or "",
        stderr=stderr or "",
        duration_ms=duration_ms,
    )


def _kill_group(
    proc: subprocess.Popen,
    expired: Optional[subprocess.TimeoutExpired] = None,
) -> Tuple[str, str]:
    """
    SIGKILL the command's whole process group and collect what it wrote.

    The command runs in its own session, so its process group also holds
    anything it spawned (node under npm, git-remote-https under git).
    """
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        proc.kill()

    try:
        stdout, stderr = proc.communicate(timeout=KILL_GRACE_SECONDS)
    except subprocess.TimeoutExpired:
        # a descendant left the group and still holds the pipes
        proc.wait()
        if expired is None:
            return "", ""
        return _decode(expired.stdout), _decode(expired.stderr)
    return _decode(stdout), _decode(stderr)
