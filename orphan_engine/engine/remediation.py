"""
Remediation Planner for the Orphan Engine.

Builds the removal plan for orphaned bindings and carries it out, either as
a dry run or for real. Each binding is removed independently; a failed
removal is recorded in its outcome and never stops the batch.
"""

import logging
from typing import Callable, Iterable, List, NamedTuple, Optional

from ..connectors.base_connector import BindingConnector
from ..exceptions import describe_error
from ..models import Binding, RemediationMode, RemediationOutcome, RemediationPlan

logger = logging.getLogger(__name__)

ConfirmationProvider = Callable[[], bool]


class RemediationReport(NamedTuple):
    outcomes: List[RemediationOutcome]
    declined: bool = False


def requires_confirmation(mode: RemediationMode) -> bool:
    """Only mutating runs need explicit operator consent."""
    return mode == RemediationMode.EXECUTE


def success_count(outcomes: Iterable[RemediationOutcome]) -> int:
    return len([o for o in outcomes if o.succeeded])


class RemediationPlanner:
    """Plans and executes the removal of orphaned bindings."""

    def __init__(self, binding_client: BindingConnector):
        self.binding_client = binding_client

    def plan(self, orphaned: Iterable[Binding]) -> RemediationPlan:
        """
        Build a removal plan.

        Args:
            orphaned: Orphaned bindings, in the order they should be removed

        Returns:
            RemediationPlan with each binding listed once
        """
        seen = set()
        items = []
        for binding in orphaned:
            if binding.binding_id in seen:
                continue
            seen.add(binding.binding_id)
            items.append(binding)
        return RemediationPlan(items=items)

    def requires_confirmation(self, mode: RemediationMode) -> bool:
        return requires_confirmation(mode)

    def execute(self, plan: RemediationPlan, mode: RemediationMode) -> List[RemediationOutcome]:
        """
        Carry out a removal plan.

        Args:
            plan: The plan to execute
            mode: DryRun reports intended removals; Execute performs them

        Returns:
            One RemediationOutcome per planned binding
        """
        if plan.is_empty:
            logger.info("Remediation plan is empty, nothing to do")
            return []

        if mode == RemediationMode.DRY_RUN:
            outcomes = []
            for binding in plan.items:
                logger.info(f"DRY-RUN: would remove {binding.role_name} for {binding.subject.id} "
                            f"at {binding.scope_path}")
                outcomes.append(RemediationOutcome(binding=binding))
            return outcomes

        outcomes = [self._remove(binding) for binding in plan.items]
        logger.info(f"Removed {success_count(outcomes)} of {len(outcomes)} orphaned bindings")
        return outcomes

    def remediate(self, plan: RemediationPlan, mode: RemediationMode,
                  confirm: Optional[ConfirmationProvider] = None) -> RemediationReport:
        """
        Execute a plan once the operator has agreed to it.

        Without a confirmation provider, mutating runs are declined.
        """
        if plan.is_empty:
            return RemediationReport([])

        if self.requires_confirmation(mode):
            if confirm is None or not confirm():
                logger.warning(f"Removal of {len(plan)} bindings was not confirmed, skipping")
                return RemediationReport([], declined=True)

        return RemediationReport(self.execute(plan, mode))

    def _remove(self, binding: Binding) -> RemediationOutcome:
        try:
            result = self.binding_client.delete_binding(
                binding.subject.id, binding.role_name, binding.scope, binding.scope_path
            )
        except Exception as e:
            logger.error(f"Exception removing binding {binding.binding_id}: {e}")
            return RemediationOutcome(binding=binding, attempted=True, error=describe_error(e))

        if result.success:
            logger.info(f"Removed {binding.role_name} for {binding.subject.id} at {binding.scope_path}")
            return RemediationOutcome(binding=binding, attempted=True, succeeded=True)

        error = result.error or result.message or "Unknown error"
        logger.error(f"Failed to remove binding {binding.binding_id}: {error}")
        return RemediationOutcome(binding=binding, attempted=True, error=error)
