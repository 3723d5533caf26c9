#!/usr/bin/env python3
"""
Orphan Control CLI - Command Line Interface for the Orphan Engine.

Provides commands for scanning scopes for orphaned access bindings,
removing them under confirmation, and reviewing the remediation audit log.
"""

import logging
import sys
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm
from rich.table import Table

from ..audit import AuditLogger, ExportWriter
from ..config import EngineConfig, load_config
from ..connectors import get_provider
from ..exceptions import SetupError
from ..models import RemediationMode
from ..workflows import OrphanSweepWorkflow
from .report import ConsoleReporter

logger = logging.getLogger(__name__)

# Rich console for pretty output
console = Console()


class OrphanController:
    """Main controller for Orphan Engine operations."""

    def __init__(self, config_path: Optional[str] = None, mock_mode: Optional[bool] = None):
        """Initialize the controller from a config file and the --mock/--real switch."""
        config = load_config(config_path)
        if mock_mode is not None:
            config = config.with_overrides(provider="mock" if mock_mode else "azure")
        self.config: EngineConfig = config
        self._provider = None

    @property
    def provider(self):
        if self._provider is None:
            self._provider = get_provider(self.config)
        return self._provider

    def workflow(self, confirmation_provider=None, **overrides) -> OrphanSweepWorkflow:
        config = self.config.with_overrides(**overrides)
        return OrphanSweepWorkflow(
            config,
            self.provider,
            confirmation_provider=confirmation_provider,
            audit_logger=AuditLogger(config.audit_dir),
            export_writer=ExportWriter(config.export_dir),
        )


def _remediation_mode(dry_run: bool, remove: bool) -> Optional[RemediationMode]:
    if dry_run:
        return RemediationMode.DRY_RUN
    if remove:
        return RemediationMode.EXECUTE
    return None


@click.group()
@click.option('--config', '-c', help='Path to configuration file (YAML or JSON)')
@click.option('--mock/--real', default=None, help='Use the mock provider or the real Azure provider')
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, config, mock, verbose):
    """Orphan Engine Control CLI - find and remove orphaned access bindings"""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING,
                        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    ctx.ensure_object(dict)
    try:
        ctx.obj['controller'] = OrphanController(config, mock)
    except SetupError as e:
        console.print(f"[red]Configuration error: {escape(str(e))}[/red]")
        ctx.exit(1)


@cli.command()
@click.option('--scope', 'scope_id', help='Scope (subscription) ID to scan; defaults to all accessible scopes')
@click.option('--dry-run', is_flag=True, help='Show which bindings would be removed without removing them')
@click.option('--remove', is_flag=True, help='Remove orphaned bindings after confirmation')
@click.option('--yes', '-y', is_flag=True, help='Pre-confirm removal for unattended runs')
@click.option('--export-dir', help='Directory for the orphaned-bindings export')
@click.option('--workers', type=int, help='Worker threads used to classify bindings')
@click.option('--strict', is_flag=True,
              help='Report subjects with failed lookups as indeterminate instead of orphaned')
@click.pass_context
def scan(ctx, scope_id, dry_run, remove, yes, export_dir, workers, strict):
    """Scan scopes for orphaned bindings and optionally remove them."""
    if dry_run and remove:
        raise click.UsageError("--dry-run and --remove cannot be used together")

    controller = ctx.obj['controller']
    reporter = ConsoleReporter(console)

    def confirm() -> bool:
        if yes:
            return True
        return Confirm.ask("Remove the orphaned bindings listed above?", console=console, default=False)

    try:
        workflow = controller.workflow(
            confirmation_provider=confirm,
            export_dir=export_dir,
            max_workers=workers,
            strict_resolution=strict or None,
        )
        console.print(f"[blue]Starting orphan scan {workflow.workflow_id}[/blue]")
        summary = workflow.scan(scope_id)
    except SetupError as e:
        console.print(f"[red]✗ {escape(str(e))}[/red]")
        ctx.exit(1)

    reporter.scopes(summary)
    reporter.findings(summary)

    mode = _remediation_mode(dry_run, remove)
    if mode is not None:
        workflow.remediate(summary, mode)
        reporter.outcomes(summary)

    reporter.summary(summary)


@cli.command()
@click.pass_context
def scopes(ctx):
    """List the scopes accessible to the current session."""
    controller = ctx.obj['controller']

    try:
        session = controller.provider.session
        session.ensure_authenticated()
        accessible = session.list_scopes()
    except SetupError as e:
        console.print(f"[red]✗ {escape(str(e))}[/red]")
        ctx.exit(1)

    if not accessible:
        console.print("[yellow]No accessible scopes found[/yellow]")
        ctx.exit(1)

    table = Table(title=f"Accessible Scopes ({len(accessible)})")
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="green")
    for scope in accessible:
        table.add_row(scope.id, scope.display_name)

    console.print(table)


@cli.command()
@click.option('--run-id', help='Only show records of this run')
@click.option('--subject', 'subject_id', help='Only show records for this subject ID')
@click.option('--limit', default=50, help='Maximum number of records to show')
@click.pass_context
def audit_trail(ctx, run_id, subject_id, limit):
    """Show remediation audit records."""
    controller = ctx.obj['controller']

    records = AuditLogger(controller.config.audit_dir).get_events(run_id=run_id, subject_id=subject_id,
                                                                  limit=limit)
    if not records:
        console.print("[yellow]No audit records found[/yellow]")
        return

    table = Table(title="Remediation Audit Trail")
    table.add_column("Timestamp", style="cyan")
    table.add_column("Run", style="blue")
    table.add_column("Action", style="magenta")
    table.add_column("Subject", style="yellow")
    table.add_column("Role", style="green")
    table.add_column("Scope Path")
    table.add_column("Success", style="red")

    for record in records:
        table.add_row(
            record.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            record.run_id[:8],
            record.action,
            record.subject_id,
            record.role_name,
            record.scope_path,
            "✓" if record.success else "✗",
        )

    console.print(table)


def main():
    """Console script entry point."""
    cli(obj={})


if __name__ == "__main__":
    sys.exit(main())
