"""
mirrorsite - Keep a local mirror of an upstream repository built and served.
"""

__version__ = "1.0.0"
