"""
Server Module - Flask app serving the artifact tree.
"""

from .app import create_app, run_server

__all__ = [
    "create_app",
    "run_server",
]
