"""
Shared fixtures for mirrorsite tests.

No test touches the network or runs real git/npm: RepositoryMirror and
BuildPipeline take an injected command runner, and FakeGit / FakeNpm
below stand in for it.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pytest

from mirrorsite.errors import CommandFailed, CommandTimeout
from mirrorsite.models.config import RetryPolicy, Settings, Source
from mirrorsite.process import CommandResult

PRIMARY = Source(name="gitee", url="https://gitee.com/mirrors/three.js.git")
BACKUP = Source(name="github", url="https://github.com/mrdoob/three.js.git")

NETWORK_STDERR = "fatal: unable to access '{url}': Could not resolve host: example"
GIT_STDERR = "fatal: Not possible to fast-forward, aborting."


def _ok(cmd: Sequence[str], stdout: str = "") -> CommandResult:
    return CommandResult(cmd=list(cmd), returncode=0, stdout=stdout, stderr="")


def _raise(cmd: Sequence[str], outcome: str, timeout: Optional[float], url: str = "") -> None:
    if outcome == "ok":
        return
    if outcome == "network":
        raise CommandFailed(cmd, 128, "", NETWORK_STDERR.format(url=url or "remote"))
    if outcome == "git":
        raise CommandFailed(cmd, 128, "", GIT_STDERR)
    if outcome == "timeout":
        raise CommandTimeout(cmd, timeout or 1, "", "")
    raise ValueError(f"unknown outcome {outcome}")


class FakeGit:
    """
    Scripted git.

    ``clone`` maps a URL to the outcomes of successive clones from it;
    ``pull`` lists the outcomes of successive pulls. Outcomes are
    "ok", "network", "git" or "timeout"; an exhausted script yields
    ``default``.
    """

    def __init__(
        self,
        clone: Optional[Dict[str, List[str]]] = None,
        pull: Optional[List[str]] = None,
        origin: Optional[str] = None,
        default: str = "ok",
    ):
        self.clone = {url: list(outcomes) for url, outcomes in (clone or {}).items()}
        self.pull = list(pull or [])
        self.origin = origin
        self.default = default
        self.calls: List[List[str]] = []

    def _next(self, queue: List[str]) -> str:
        return queue.pop(0) if queue else self.default

    def __call__(self, cmd, cwd=None, timeout=None, env=None, log=None) -> CommandResult:
        cmd = list(cmd)
        self.calls.append(cmd)
        args = cmd[1:]

        if args[0] == "clone":
            url, path = args[1], Path(args[2])
            _raise(cmd, self._next(self.clone.setdefault(url, [])), timeout, url)
            (path / ".git").mkdir(parents=True, exist_ok=True)
            self.origin = url
            return _ok(cmd)

        if args[:2] == ["remote", "get-url"]:
            if self.origin is None:
                raise CommandFailed(cmd, 2, "", "error: No such remote 'origin'")
            return _ok(cmd, stdout=self.origin + "\n")

        if args[:2] in (["remote", "set-url"], ["remote", "add"]):
            self.origin = args[3]
            return _ok(cmd)

        if args[0] == "pull":
            _raise(cmd, self._next(self.pull), timeout, self.origin or "")
            return _ok(cmd, stdout="Already up to date.\n")

        raise AssertionError(f"unexpected git call: {cmd}")

    def clones(self) -> List[str]:
        """URLs of every clone attempt, in order."""
        return [c[2] for c in self.calls if c[1] == "clone"]

    def pulls(self) -> int:
        return sum(1 for c in self.calls if c[1] == "pull")

    def set_urls(self) -> List[str]:
        return [c[4] for c in self.calls if c[1:3] == ["remote", "set-url"]]


class FakeNpm:
    """Scripted npm: commands listed in ``fail`` exit 1, in ``hang`` time out."""

    def __init__(self, fail: Sequence[str] = (), hang: Sequence[str] = ()):
        self.fail = set(fail)
        self.hang = set(hang)
        self.calls: List[str] = []

    def __call__(self, cmd, cwd=None, timeout=None, env=None, log=None) -> CommandResult:
        line = " ".join(cmd)
        self.calls.append(line)
        if line in self.hang:
            raise CommandTimeout(cmd, timeout or 1, "partial output", "")
        if line in self.fail:
            raise CommandFailed(cmd, 1, "", f"npm ERR! {line} failed")
        return _ok(cmd, stdout=f"{line} ok")


class SleepRecorder:
    def __init__(self):
        self.delays: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def sleep():
    return SleepRecorder()


@pytest.fixture
def policy():
    return RetryPolicy(max_retries=3, retry_delay=5.0)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Default settings anchored in a temp project root."""
    return Settings().resolve_paths(tmp_path)


SITE_PAGE = """<!DOCTYPE html>
<html>
<head><link href="https://threejs.org/files/main.css" rel="stylesheet"></head>
<body>
  <a href="https://threejs.org/">home</a>
  <a href="https://threejs.org/manual/">manual</a>
  <a href="https://github.com/mrdoob/three.js/blob/master/src/core/Object3D.js">source</a>
</body>
</html>
"""


@pytest.fixture
def checkout(settings: Settings) -> Path:
    """A synced checkout holding every section the full build copies."""
    repo = settings.paths.repo
    (repo / ".git").mkdir(parents=True)
    for section in settings.build.sections:
        (repo / section).mkdir(parents=True, exist_ok=True)
        (repo / section / "index.html").write_text(f"<h1>{section}</h1>", encoding="utf-8")
    (repo / "docs" / "index.html").write_text(SITE_PAGE, encoding="utf-8")
    (repo / "src" / "core").mkdir()
    (repo / "src" / "core" / "Object3D.js").write_text("class Object3D {}\n", encoding="utf-8")
    (repo / "build" / "three.module.js").write_text("export {};\n", encoding="utf-8")
    return repo


@pytest.fixture
def sources() -> List[Source]:
    return [PRIMARY, BACKUP]


@pytest.fixture
def make_git():
    return FakeGit


@pytest.fixture
def make_npm():
    return FakeNpm
