"""
Workflows Package for the Orphan Engine.

This package provides the sweep workflow that ties enumeration,
classification, export and remediation together.
"""

from .sweep import OrphanSweepWorkflow

__all__ = ["OrphanSweepWorkflow"]
