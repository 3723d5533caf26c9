"""
CLI Package for the Orphan Engine.
"""

from .orphanctl import cli, main

__all__ = ["cli", "main"]
