"""
Mirror Module - Local checkout sync with retry, fallback and self-healing.
"""

from .repository import RepositoryMirror
from .state import MirrorState, SyncStatus

__all__ = [
    "RepositoryMirror",
    "MirrorState",
    "SyncStatus",
]
