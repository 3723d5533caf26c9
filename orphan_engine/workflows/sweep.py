"""
Orphan Sweep Workflow for the Orphan Engine.

Runs a complete reconciliation: checks the provider session, enumerates
every requested scope, classifies the bindings, exports the orphaned ones
and, when asked to, removes them after confirmation.
"""

import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import Any, List, Optional

from ..audit import AuditLogger, ExportWriter
from ..config import EngineConfig
from ..engine import BindingEnumerator, IdentityResolver, Reconciler, RemediationPlanner, orphaned_bindings
from ..engine.remediation import ConfirmationProvider
from ..exceptions import EnumerationError, SetupError, describe_error
from ..models import Binding, RemediationMode, RunSummary, Scope, ScopeReport, Verdict, utcnow

logger = logging.getLogger(__name__)


class OrphanSweepWorkflow:
    """
    Workflow that finds and optionally removes orphaned bindings.

    The orphaned set is computed once per run; the same list feeds the
    summary, the export and the remediation plan.
    """

    def __init__(self, config: EngineConfig, provider: Any,
                 confirmation_provider: Optional[ConfirmationProvider] = None,
                 audit_logger: Optional[AuditLogger] = None,
                 export_writer: Optional[ExportWriter] = None):
        """
        Initialize the workflow.

        Args:
            config: Engine configuration
            provider: Object exposing ``session``, ``directory`` and ``binding_client``
            confirmation_provider: Asked before any mutating removal; None declines
            audit_logger: Remediation audit log, defaults to config.audit_dir
            export_writer: Export sink, defaults to config.export_dir
        """
        self.config = config
        self.workflow_id = str(uuid.uuid4())
        self.session = provider.session
        self.confirmation_provider = confirmation_provider

        resolver = IdentityResolver(provider.directory, strict=config.strict_resolution,
                                    not_found_sentinel=config.not_found_sentinel)
        self.enumerator = BindingEnumerator(provider.binding_client)
        self.reconciler = Reconciler(resolver, max_workers=config.max_workers)
        self.planner = RemediationPlanner(provider.binding_client)
        self.audit_logger = audit_logger or AuditLogger(config.audit_dir)
        self.export_writer = export_writer or ExportWriter(config.export_dir)

        logger.info(f"Initialized {self.__class__.__name__} {self.workflow_id}")

    def execute(self, scope_id: Optional[str] = None,
                mode: Optional[RemediationMode] = None) -> RunSummary:
        """
        Execute a sweep.

        Args:
            scope_id: Restrict the sweep to one scope; all accessible scopes by default
            mode: Remediation mode, or None to only report

        Returns:
            RunSummary with per-scope results, orphans, outcomes and errors

        Raises:
            SetupError: If there is no session or no accessible scope
        """
        summary = self.scan(scope_id)
        if mode is not None:
            self.remediate(summary, mode)
        return summary

    def scan(self, scope_id: Optional[str] = None) -> RunSummary:
        """
        Enumerate, classify and export, without mutating anything.

        Raises:
            SetupError: If there is no session, no accessible scope, or the
                export cannot be written
        """
        summary = RunSummary(run_id=self.workflow_id, started_at=utcnow())
        logger.info(f"Starting orphan sweep {self.workflow_id}")

        self.session.ensure_authenticated()
        scopes = self._target_scopes(scope_id)

        summary.scopes = self._scan_scopes(scopes)
        for report in summary.skipped_scopes:
            logger.warning(f"Skipped scope {report.scope}: {report.error}")
            summary.errors.append(f"Skipped scope {report.scope}: {report.error}")

        classifications = [c for report in summary.scopes for c in report.classifications]
        for failed in [c for c in classifications if c.verdict == Verdict.FAILED]:
            summary.errors.append(f"Could not classify binding {failed.binding.binding_id}: {failed.error}")
        summary.indeterminate = [c for c in classifications if c.verdict == Verdict.INDETERMINATE]
        summary.orphaned = sorted(orphaned_bindings(classifications), key=Binding.sort_key)

        if summary.orphaned:
            summary.export_path = str(self.export_writer.write(summary.orphaned, summary.started_at))
        else:
            logger.info("No orphaned bindings found")

        summary.completed_at = utcnow()
        logger.info(f"Completed orphan scan {self.workflow_id}: {len(summary.scopes)} scopes, "
                    f"{summary.total_bindings} bindings, {len(summary.orphaned)} orphaned, "
                    f"{len(summary.errors)} errors")
        return summary

    def remediate(self, summary: RunSummary, mode: RemediationMode) -> RunSummary:
        """
        Remove (or simulate removing) the orphaned bindings of a scanned run.

        Args:
            summary: Result of scan(); its orphaned list is the removal plan
            mode: DryRun or Execute

        Returns:
            The same summary, with remediation outcomes recorded
        """
        summary.remediation_mode = mode
        if not summary.orphaned:
            return summary

        plan = self.planner.plan(summary.orphaned)
        report = self.planner.remediate(plan, mode, self.confirmation_provider)

        summary.confirmation_declined = report.declined
        summary.outcomes = report.outcomes

        if report.outcomes:
            self.audit_logger.log_outcomes(summary.run_id, report.outcomes)

        for outcome in report.outcomes:
            if outcome.attempted and not outcome.succeeded:
                summary.errors.append(f"Failed to remove binding {outcome.binding.binding_id}: {outcome.error}")

        summary.completed_at = utcnow()
        return summary

    def _target_scopes(self, scope_id: Optional[str]) -> List[Scope]:
        if scope_id:
            scope = self.session.get_scope(scope_id)
            if scope is None:
                raise SetupError(f"Scope {scope_id} is not accessible with the current session")
            return [scope]

        scopes = self.session.list_scopes()
        if not scopes:
            raise SetupError("No accessible scopes found for the current session")
        return scopes

    def _scan_scopes(self, scopes: List[Scope]) -> List[ScopeReport]:
        if self.config.max_scope_workers == 1 or len(scopes) < 2:
            return [self._scan_scope(scope) for scope in scopes]

        # Results are collected here, in scope order, by this thread only
        with ThreadPoolExecutor(max_workers=self.config.max_scope_workers) as executor:
            futures = [executor.submit(self._scan_scope, scope) for scope in scopes]
            return [future.result() for future in futures]

    def _scan_scope(self, scope: Scope) -> ScopeReport:
        try:
            bindings = self.enumerator.list(scope)
        except EnumerationError as e:
            return ScopeReport(scope=scope, skipped=True, error=describe_error(e))

        return ScopeReport(scope=scope, classifications=self.reconciler.classify(bindings))
