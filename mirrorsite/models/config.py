"""
Config Models - Pydantic schemas for service configuration.

The defaults reproduce the stock three.js mirror: Gitee first (faster
from mainland networks), GitHub as the backup, a nightly 02:00 cycle,
and the full/minimal section sets served by the local site.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

FULL_SECTIONS = [
    "build",
    "docs",
    "editor",
    "examples",
    "manual",
    "playground",
    "files",
    "src",
]

MINIMAL_SECTIONS = ["build", "examples", "files", "manual", "src"]


class Source(BaseModel):
    """A candidate remote for the mirror."""

    name: str
    url: str

    @field_validator("url")
    @classmethod
    def _url_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("source url must not be empty")
        return value


class RetryPolicy(BaseModel):
    """Attempt budget for a single network operation."""

    max_retries: int = Field(default=3, ge=1)
    retry_delay: float = Field(default=5.0, ge=0)


class PathSettings(BaseModel):
    repo: Path = Path("three.js-repo")
    website: Path = Path("website")
    state: Path = Path("state")


class LogSettings(BaseModel):
    dir: Path = Path("logs")
    level: str = "INFO"
    format: str = "text"
    console: bool = True
    max_bytes: int = 10 * 1024 * 1024
    backup_count: int = 10


class SyncSettings(BaseModel):
    # Six fields: second minute hour day-of-month month day-of-week
    schedule: str = "0 0 2 * * *"
    sync_on_start: bool = True
    clone_timeout: float = 600
    pull_timeout: float = 600
    git_timeout: float = 30
    retry: RetryPolicy = Field(default_factory=RetryPolicy)


class BuildSettings(BaseModel):
    install_command: List[str] = Field(
        default_factory=lambda: ["npm", "install", "--no-fund", "--no-audit", "--loglevel=error"]
    )
    install_fallback_command: List[str] = Field(
        default_factory=lambda: [
            "npm", "install", "--production", "--no-fund", "--no-audit", "--loglevel=error",
        ]
    )
    build_command: List[str] = Field(default_factory=lambda: ["npm", "run", "build"])
    docs_command: List[str] = Field(default_factory=lambda: ["npm", "run", "build-docs"])
    dependency_dir: str = "node_modules"

    install_timeout: float = 1200
    install_fallback_timeout: float = 600
    build_timeout: float = 600
    docs_timeout: float = 600

    sections: List[str] = Field(default_factory=lambda: list(FULL_SECTIONS))
    minimal_sections: List[str] = Field(default_factory=lambda: list(MINIMAL_SECTIONS))
    required_minimal_sections: List[str] = Field(default_factory=lambda: ["build"])

    # Sections whose index.html self-links are made relative
    site_link_sections: List[str] = Field(default_factory=lambda: ["docs", "examples", "manual"])
    # Sections whose pages get source links pointed at the code viewer
    source_link_sections: List[str] = Field(default_factory=lambda: ["docs"])

    site_url: str = "https://threejs.org"
    source_browse_url: str = "https://github.com/mrdoob/three.js/blob"
    index_template: Optional[Path] = None
    title: str = "three.js local mirror"


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = Field(default=9753, ge=1, le=65535)


class Settings(BaseModel):
    """Complete service configuration."""

    sources: List[Source] = Field(
        default_factory=lambda: [
            Source(name="gitee", url="https://gitee.com/mirrors/three.js.git"),
            Source(name="github", url="https://github.com/mrdoob/three.js.git"),
        ]
    )
    paths: PathSettings = Field(default_factory=PathSettings)
    logs: LogSettings = Field(default_factory=LogSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    build: BuildSettings = Field(default_factory=BuildSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)

    @field_validator("sources")
    @classmethod
    def _sources_not_empty(cls, value: List[Source]) -> List[Source]:
        if not value:
            raise ValueError("at least one source is required")
        return value

    def resolve_paths(self, root: Path) -> "Settings":
        """Return a copy with relative paths anchored at ``root``."""

        def _anchor(path: Path) -> Path:
            path = Path(path).expanduser()
            return path if path.is_absolute() else root / path

        data = self.model_copy(deep=True)
        data.paths.repo = _anchor(data.paths.repo)
        data.paths.website = _anchor(data.paths.website)
        data.paths.state = _anchor(data.paths.state)
        data.logs.dir = _anchor(data.logs.dir)
        if data.build.index_template is not None:
            data.build.index_template = _anchor(data.build.index_template)
        return data
