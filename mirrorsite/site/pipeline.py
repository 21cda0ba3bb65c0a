"""
Build Pipeline - Turn the local checkout into the served artifact tree.

## Full build

1. install   npm install (once more with --production on failure),
             skipped when node_modules/ already exists
2. build     npm run build
3. docs      npm run build-docs
4. copy      build/ docs/ editor/ examples/ manual/ playground/ files/ src/
5. generate  codeview/ + index.html
6. rewrite   site links → relative, source links → code viewer

Any failing step aborts the rest and raises BuildFailure(FULL).

## Minimal build

No install, no npm. Clears every managed section from the serving
root, copies whichever of ``minimal_sections`` exist in the checkout
(``required_minimal_sections`` must exist), then generates and
rewrites as above. Raises BuildFailure(MINIMAL) only when it cannot
produce a servable tree.

## Usage

    from mirrorsite.site.pipeline import BuildPipeline

    pipeline = BuildPipeline.from_settings(settings, logger=build_logger)
    try:
        result = pipeline.build_full()
    except BuildFailure:
        result = pipeline.build_minimal()
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from ..errors import (
    BuildFailure,
    BuildKind,
    CommandFailed,
    CommandTimeout,
    InstallFailure,
    LinkRewriteFailure,
)
from ..helpers import remove_path
from ..models.config import BuildSettings, Settings
from ..process import CommandRunner, run_command
from .codeview import generate_codeview, generate_index
from .links import rewrite_tree

logger = logging.getLogger(__name__)

GENERATED_SECTIONS = ("codeview",)


@dataclass
class BuildResult:
    """Outcome of a build path."""

    kind: BuildKind
    output_dir: Path
    diagnostics: List[str] = field(default_factory=list)
    sections: List[str] = field(default_factory=list)
    pages_rewritten: int = 0


class BuildPipeline:
    """Full and minimal build paths over a synced checkout."""

    def __init__(
        self,
        repo_path: Path,
        website_path: Path,
        settings: Optional[BuildSettings] = None,
        runner: CommandRunner = run_command,
        logger: Optional[logging.Logger] = None,
    ):
        self.repo_path = Path(repo_path)
        self.website_path = Path(website_path)
        self.settings = settings or BuildSettings()
        self.log = logger or logging.getLogger(__name__)
        self._runner = runner

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        logger: Optional[logging.Logger] = None,
        runner: CommandRunner = run_command,
    ) -> "BuildPipeline":
        return cls(
            repo_path=settings.paths.repo,
            website_path=settings.paths.website,
            settings=settings.build,
            runner=runner,
            logger=logger,
        )

    # ------------------------------------------------------------------
    # Full build
    # ------------------------------------------------------------------

    def build_full(self) -> BuildResult:
        """
        Run install → build → docs → copy → generate → rewrite.

        Raises:
            BuildFailure: kind FULL, with the failing step and diagnostics
        """
        result = BuildResult(kind=BuildKind.FULL, output_dir=self.website_path)
        self.log.info(f"Starting full build: {self.repo_path} → {self.website_path}")

        if not (self.repo_path / ".git").exists():
            raise BuildFailure(BuildKind.FULL, f"Checkout missing at {self.repo_path}", step="check")

        step = "install"
        try:
            self._install_dependencies(result)

            step = "build"
            self._run_step(self.settings.build_command, self.settings.build_timeout, result)

            step = "docs"
            self._run_step(self.settings.docs_command, self.settings.docs_timeout, result)

            step = "copy"
            result.sections = self._copy_sections(self.settings.sections, required=self.settings.sections)

            step = "generate"
            self._generate_pages(BuildKind.FULL)

            step = "rewrite"
            result.pages_rewritten = self._rewrite_links()
        except (InstallFailure, CommandFailed, CommandTimeout, LinkRewriteFailure, OSError) as e:
            result.diagnostics.append(f"[{step}] {e}")
            self.log.error(f"Full build failed at {step}: {e}")
            raise BuildFailure(BuildKind.FULL, str(e), step=step, diagnostics=result.diagnostics) from e

        self.log.info(
            f"Full build complete: {len(result.sections)} sections, "
            f"{result.pages_rewritten} pages rewritten"
        )
        return result

    def _install_dependencies(self, result: BuildResult) -> None:
        deps = self.repo_path / self.settings.dependency_dir
        if deps.exists():
            self.log.info(f"{self.settings.dependency_dir}/ present, skipping install")
            return

        self.log.info("Installing dependencies...")
        try:
            self._run_step(self.settings.install_command, self.settings.install_timeout, result)
            return
        except (CommandFailed, CommandTimeout) as e:
            result.diagnostics.append(f"[install] {e}")
            self.log.warning("Full dependency install failed, retrying with production profile")

        try:
            self._run_step(
                self.settings.install_fallback_command,
                self.settings.install_fallback_timeout,
                result,
            )
        except (CommandFailed, CommandTimeout) as e:
            raise InstallFailure(f"Dependency install failed with every profile: {e}") from e

    def _run_step(self, cmd: Sequence[str], timeout: float, result: BuildResult) -> None:
        try:
            completed = self._runner(list(cmd), cwd=self.repo_path, timeout=timeout, log=self.log)
        except (CommandFailed, CommandTimeout) as e:
            if e.output:
                result.diagnostics.append(f"$ {' '.join(e.cmd)}\n{e.output.rstrip()}")
            raise
        result.diagnostics.append(completed.transcript())

    # ------------------------------------------------------------------
    # Minimal build
    # ------------------------------------------------------------------

    def build_minimal(self) -> BuildResult:
        """
        Produce the reduced artifact set without npm.

        Raises:
            BuildFailure: kind MINIMAL, when no servable tree can be produced
        """
        result = BuildResult(kind=BuildKind.MINIMAL, output_dir=self.website_path)
        self.log.info(f"Starting minimal build: {self.repo_path} → {self.website_path}")

        if not self.repo_path.is_dir():
            raise BuildFailure(BuildKind.MINIMAL, f"Checkout missing at {self.repo_path}", step="check")

        missing = [
            s for s in self.settings.required_minimal_sections
            if not (self.repo_path / s).is_dir()
        ]
        if missing:
            raise BuildFailure(
                BuildKind.MINIMAL,
                f"Required sections missing from checkout: {', '.join(missing)}",
                step="check",
            )

        step = "clean"
        try:
            self._clear_managed_sections()

            step = "copy"
            result.sections = self._copy_sections(
                self.settings.minimal_sections,
                required=self.settings.required_minimal_sections,
            )

            step = "generate"
            self._generate_pages(BuildKind.MINIMAL)

            step = "rewrite"
            result.pages_rewritten = self._rewrite_links()
        except (LinkRewriteFailure, OSError) as e:
            result.diagnostics.append(f"[{step}] {e}")
            self.log.error(f"Minimal build failed at {step}: {e}")
            raise BuildFailure(BuildKind.MINIMAL, str(e), step=step, diagnostics=result.diagnostics) from e

        self.log.info(f"Minimal build complete: sections={', '.join(result.sections)}")
        return result

    # ------------------------------------------------------------------
    # Shared steps
    # ------------------------------------------------------------------

    def _copy_sections(self, sections: Sequence[str], required: Sequence[str]) -> List[str]:
        """Replace each section in the serving root with the checkout's copy."""
        self.website_path.mkdir(parents=True, exist_ok=True)
        copied: List[str] = []

        for section in sections:
            src = self.repo_path / section
            dest = self.website_path / section

            if not src.is_dir():
                if section in required:
                    raise FileNotFoundError(f"Section '{section}' not found in checkout")
                self.log.info(f"Section {section}/ not in checkout, skipping")
                continue

            self.log.info(f"Copying {section}/")
            remove_path(dest)
            shutil.copytree(src, dest)
            copied.append(section)

        return copied

    def _clear_managed_sections(self) -> None:
        for section in list(self.settings.sections) + list(GENERATED_SECTIONS):
            remove_path(self.website_path / section)

    def _generate_pages(self, kind: BuildKind) -> None:
        generate_codeview(self.website_path, title=self.settings.title)
        generate_index(
            self.website_path,
            sections=list(self.settings.sections) + list(GENERATED_SECTIONS),
            title=self.settings.title,
            template=self.settings.index_template,
            build_kind=kind.value,
        )

    def _rewrite_links(self) -> int:
        return rewrite_tree(
            self.website_path,
            site_url=self.settings.site_url,
            browse_url=self.settings.source_browse_url,
            site_link_sections=self.settings.site_link_sections,
            source_link_sections=self.settings.source_link_sections,
            log=self.log,
        )
