"""
Reconciler for the Orphan Engine.

Classifies each binding as live or orphaned by resolving its subject.
Bindings are independent of one another, so classification can be spread
over a thread pool; results always come back in enumeration order.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, List, Sequence

from ..exceptions import describe_error
from ..models import Binding, ClassificationResult, Verdict
from .resolver import IdentityResolver, ResolutionStatus

logger = logging.getLogger(__name__)

VERDICTS = {
    ResolutionStatus.EXISTS: Verdict.LIVE,
    ResolutionStatus.ABSENT: Verdict.ORPHANED,
    ResolutionStatus.INDETERMINATE: Verdict.INDETERMINATE,
}


class Reconciler:
    """Classifies bindings against the live directory."""

    def __init__(self, resolver: IdentityResolver, max_workers: int = 1):
        self.resolver = resolver
        self.max_workers = max(1, max_workers)

    def classify(self, bindings: Sequence[Binding]) -> List[ClassificationResult]:
        """
        Classify every binding.

        Args:
            bindings: Bindings from a single enumeration pass

        Returns:
            One ClassificationResult per binding, in input order
        """
        bindings = list(bindings)
        if self.max_workers == 1 or len(bindings) < 2:
            results = [self.classify_one(b) for b in bindings]
        else:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                results = list(executor.map(self.classify_one, bindings))

        orphaned = len([r for r in results if r.orphaned])
        logger.info(f"Classified {len(results)} bindings: {orphaned} orphaned")
        return results

    def classify_one(self, binding: Binding) -> ClassificationResult:
        """Classify a single binding; resolver crashes exclude it from the orphaned set."""
        try:
            resolution = self.resolver.resolve(binding.subject)
        except Exception as e:
            logger.error(f"Failed to resolve subject {binding.subject.id} of binding {binding.binding_id}: {e}")
            return ClassificationResult(binding=binding, verdict=Verdict.FAILED,
                                        reason="resolver failure", error=describe_error(e))

        verdict = VERDICTS[resolution.status]
        logger.debug(f"Binding {binding.binding_id} ({binding.subject.id}): {verdict.value}, {resolution.reason}")
        return ClassificationResult(binding=binding, verdict=verdict, reason=resolution.reason)


def orphaned_bindings(results: Iterable[ClassificationResult]) -> List[Binding]:
    """Bindings whose verdict is Orphaned, in input order."""
    return [r.binding for r in results if r.orphaned]
