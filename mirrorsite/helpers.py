"""
Shared filesystem helpers for the mirror and the build pipeline.
"""

from __future__ import annotations

import shutil
from pathlib import Path


def remove_path(path: Path) -> bool:
    """
    Remove whatever sits at ``path``: a directory tree, a file or a symlink.

    Symlinks are unlinked, never followed.

    Returns:
        True if something was removed
    """
    path = Path(path)
    if path.is_symlink() or (path.exists() and not path.is_dir()):
        path.unlink()
        return True
    if path.is_dir():
        shutil.rmtree(path)
        return True
    return False
