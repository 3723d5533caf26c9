"""
Orphaned Access Binding Reconciler (Orphan Engine)

Finds authorization bindings whose subject has been deleted from the
identity directory and removes them safely: export before mutation,
dry-run support, explicit confirmation and per-binding result accounting.
"""

__version__ = "1.0.0"

from .engine import BindingEnumerator, IdentityResolver, Reconciler, RemediationPlanner
from .workflows import OrphanSweepWorkflow

__all__ = [
    "BindingEnumerator",
    "IdentityResolver",
    "Reconciler",
    "RemediationPlanner",
    "OrphanSweepWorkflow",
]
