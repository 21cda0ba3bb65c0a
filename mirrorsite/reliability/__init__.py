"""
Reliability Module - Bounded retry for network operations.
"""

from .retry import retry_with_policy

__all__ = [
    "retry_with_policy",
]
