"""
Status File Persistence - JSON backend for ServiceStatus.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from ..models.status import ServiceStatus

logger = logging.getLogger(__name__)

STATUS_FILE_NAME = "service_status.json"


def status_path(state_dir: Path) -> Path:
    return Path(state_dir) / STATUS_FILE_NAME


def load_status(path: Path) -> ServiceStatus:
    """
    Load the service status from a JSON file.

    A missing file is a fresh service, not an error.

    Raises:
        ValidationError: If the file does not match the schema
        json.JSONDecodeError: If the file is not JSON
    """
    if not path.exists():
        logger.debug(f"No status file at {path}, starting fresh")
        return ServiceStatus()

    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    return ServiceStatus(**data)


def save_status(status: ServiceStatus, path: Path) -> None:
    """
    Save the service status to a JSON file.

    Uses atomic write (write to temp, then replace).
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    temp_path = path.with_suffix(".tmp")
    with temp_path.open("w", encoding="utf-8") as f:
        json.dump(status.model_dump(), f, indent=4)
        f.write("\n")

    temp_path.replace(path)
    last = status.last_cycle.outcome if status.last_cycle else "none"
    logger.debug(f"Status saved: last cycle={last} → {path.name}")
