"""
Engine Package.

Exports the reconciliation core: resolver, enumerator, reconciler and
remediation planner.
"""

from .enumerator import BindingEnumerator
from .reconciler import Reconciler, orphaned_bindings
from .remediation import RemediationPlanner, RemediationReport, requires_confirmation, success_count
from .resolver import IdentityResolver, Resolution, ResolutionStatus

__all__ = [
    "BindingEnumerator",
    "IdentityResolver",
    "Reconciler",
    "RemediationPlanner",
    "RemediationReport",
    "Resolution",
    "ResolutionStatus",
    "orphaned_bindings",
    "requires_confirmation",
    "success_count",
]
