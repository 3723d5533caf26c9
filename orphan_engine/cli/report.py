"""
Console reporting for orphanctl.

Renders the structured RunSummary produced by the sweep workflow. Nothing
in here makes decisions; it only formats what the engine already decided.
"""

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..models import RemediationMode, RunSummary


class ConsoleReporter:
    """Rich console renderer for sweep results."""

    def __init__(self, console: Console):
        self.console = console

    def scopes(self, summary: RunSummary):
        table = Table(title="Scopes")
        table.add_column("Scope", style="cyan")
        table.add_column("ID", style="blue")
        table.add_column("Bindings", style="magenta")
        table.add_column("Orphaned", style="red")
        table.add_column("Status", style="green")

        for report in summary.scopes:
            status = "[yellow]skipped[/yellow]" if report.skipped else "scanned"
            table.add_row(
                report.scope.display_name or "-",
                report.scope.id,
                str(report.binding_count) if not report.skipped else "-",
                str(len(report.orphaned)) if not report.skipped else "-",
                status,
            )

        self.console.print(table)

        for report in summary.skipped_scopes:
            self.console.print(f"[yellow]⚠ Skipped scope {report.scope}: {escape(report.error or '')}[/yellow]")

    def findings(self, summary: RunSummary):
        if not summary.orphaned:
            self.console.print("[green]✓ No orphaned accounts found[/green]")
        else:
            table = Table(title=f"Orphaned Bindings ({len(summary.orphaned)})")
            table.add_column("Scope", style="cyan")
            table.add_column("Subject ID", style="yellow")
            table.add_column("Display Name", style="green")
            table.add_column("Kind", style="blue")
            table.add_column("Role", style="magenta")
            table.add_column("Scope Path")

            for binding in summary.orphaned:
                table.add_row(
                    binding.scope.display_name or binding.scope.id,
                    binding.subject.id,
                    binding.subject.display_name or "-",
                    binding.subject.kind.value,
                    binding.role_name,
                    binding.scope_path,
                )

            self.console.print(table)

            if summary.export_path:
                self.console.print(f"[blue]Exported orphaned bindings to {summary.export_path}[/blue]")

        if summary.indeterminate:
            self.console.print(f"[yellow]{len(summary.indeterminate)} bindings could not be resolved "
                               f"and were left out of removal:[/yellow]")
            for result in summary.indeterminate:
                binding = result.binding
                self.console.print(f"  - {binding.subject.id} ({binding.role_name}): {escape(result.reason)}")

    def outcomes(self, summary: RunSummary):
        if summary.confirmation_declined:
            self.console.print("[yellow]Removal not confirmed, no bindings were changed[/yellow]")
            return
        if not summary.outcomes:
            return

        if summary.remediation_mode == RemediationMode.DRY_RUN:
            self.console.print(f"[blue]DRY-RUN: would remove {len(summary.outcomes)} orphaned bindings[/blue]")
            for outcome in summary.outcomes:
                binding = outcome.binding
                self.console.print(f"  - would remove {binding.role_name} for {binding.subject.id} "
                                   f"at {binding.scope_path}")
            return

        table = Table(title="Removal Results")
        table.add_column("Subject ID", style="yellow")
        table.add_column("Role", style="magenta")
        table.add_column("Scope Path")
        table.add_column("Result")

        for outcome in summary.outcomes:
            if outcome.succeeded:
                result = "[green]✓ removed[/green]"
            else:
                result = f"[red]✗ {escape(outcome.error or '')}[/red]"
            table.add_row(outcome.binding.subject.id, outcome.binding.role_name,
                          outcome.binding.scope_path, result)

        self.console.print(table)

    def summary(self, summary: RunSummary):
        table = Table(title="Run Summary")
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="magenta")

        table.add_row("Run ID", summary.run_id)
        table.add_row("Scopes scanned", str(len(summary.scopes) - len(summary.skipped_scopes)))
        table.add_row("Scopes skipped", str(len(summary.skipped_scopes)))
        table.add_row("Bindings checked", str(summary.total_bindings))
        table.add_row("Orphaned", str(len(summary.orphaned)))
        if summary.indeterminate:
            table.add_row("Indeterminate", str(len(summary.indeterminate)))
        if summary.remediation_mode == RemediationMode.EXECUTE and not summary.confirmation_declined:
            table.add_row("Removed", str(summary.succeeded_count))
            table.add_row("Failed removals", str(summary.failed_count))

        self.console.print(table)

        if summary.errors:
            self.console.print("[red]Errors:[/red]")
            for error in summary.errors:
                self.console.print(f"  - {escape(error)}")
