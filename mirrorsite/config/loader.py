"""
Config Loader - Build Settings from defaults, a YAML file and the environment.

Priority (later wins):
1. Built-in defaults (see models/config.py)
2. YAML file: MIRRORSITE_CONFIG, or mirrorsite.yaml in the project root
3. Individual environment variables

## Environment Variables

- MIRRORSITE_CONFIG: path to the YAML file
- MIRRORSITE_SOURCES: comma-separated remote URLs (primary first)
- MIRRORSITE_REPO_PATH / MIRRORSITE_WEBSITE_PATH / MIRRORSITE_STATE_PATH
- MIRRORSITE_SCHEDULE: six-field cron expression
- MIRRORSITE_HOST / MIRRORSITE_PORT
- LOG_LEVEL / LOG_FORMAT

## Usage

    from mirrorsite.config.loader import load_settings

    settings = load_settings()
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import ValidationError

from ..errors import ConfigError
from ..models.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = "mirrorsite.yaml"


def get_project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent.parent


def load_yaml(path: Path) -> Dict[str, Any]:
    """Load a YAML file and return its contents (empty file → {})."""
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level")
    return data


def _source_name(url: str, index: int) -> str:
    host = url.split("://", 1)[-1].split("/", 1)[0].split("@")[-1]
    return host.split(".")[0] if host else f"source-{index + 1}"


def _apply_env(data: Dict[str, Any], env: Mapping[str, str]) -> Dict[str, Any]:
    """Overlay individual environment variables onto raw config data."""
    sources = env.get("MIRRORSITE_SOURCES")
    if sources:
        urls = [u.strip() for u in sources.split(",") if u.strip()]
        data["sources"] = [
            {"name": _source_name(url, i), "url": url} for i, url in enumerate(urls)
        ]

    paths = data.setdefault("paths", {})
    for key, var in (
        ("repo", "MIRRORSITE_REPO_PATH"),
        ("website", "MIRRORSITE_WEBSITE_PATH"),
        ("state", "MIRRORSITE_STATE_PATH"),
    ):
        if env.get(var):
            paths[key] = env[var]

    if env.get("MIRRORSITE_SCHEDULE"):
        data.setdefault("sync", {})["schedule"] = env["MIRRORSITE_SCHEDULE"]

    server = data.setdefault("server", {})
    if env.get("MIRRORSITE_HOST"):
        server["host"] = env["MIRRORSITE_HOST"]
    if env.get("MIRRORSITE_PORT"):
        server["port"] = env["MIRRORSITE_PORT"]

    logs = data.setdefault("logs", {})
    if env.get("LOG_LEVEL"):
        logs["level"] = env["LOG_LEVEL"]
    if env.get("LOG_FORMAT"):
        logs["format"] = env["LOG_FORMAT"]

    return data


def load_settings(
    path: Optional[Path] = None,
    root: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> Settings:
    """
    Load and validate the service configuration.

    Args:
        path: Explicit YAML file (must exist if given)
        root: Directory relative paths resolve against (default: project root)
        env: Environment mapping (default: os.environ)

    Returns:
        Settings with absolute paths

    Raises:
        ConfigError: unreadable file or failed validation
    """
    env = os.environ if env is None else env
    root = Path(root) if root else get_project_root()

    config_path: Optional[Path] = None
    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")
    elif env.get("MIRRORSITE_CONFIG"):
        config_path = Path(env["MIRRORSITE_CONFIG"])
        if not config_path.exists():
            raise ConfigError(f"MIRRORSITE_CONFIG points to a missing file: {config_path}")
    elif (root / DEFAULT_CONFIG_NAME).exists():
        config_path = root / DEFAULT_CONFIG_NAME

    data: Dict[str, Any] = {}
    if config_path is not None:
        data = load_yaml(config_path)
        logger.info(f"Loaded configuration from {config_path}")

    data = _apply_env(data, env)

    try:
        settings = Settings(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e

    return settings.resolve_paths(root)
