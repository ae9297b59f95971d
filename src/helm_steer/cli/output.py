"""Rich rendering of computed plans and execution results."""

from typing import Any, Dict

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from helm_steer.orchestrator.executor import ExecutionResult, ExecutionStatus
from helm_steer.orchestrator.orchestrator import SteerPlan
from helm_steer.orchestrator.reconciler import Action
from helm_steer.utils.errors import ValidationError

ACTION_STYLES = {
    Action.INSTALL: ("+", "green"),
    Action.UPGRADE: ("~", "yellow"),
    Action.DELETE: ("-", "red"),
}

STATUS_MARKS = {
    ExecutionStatus.SUCCEEDED: "[green]✓[/green]",
    ExecutionStatus.FAILED: "[red]✗[/red]",
    ExecutionStatus.SKIPPED: "[dim]-[/dim]",
    ExecutionStatus.PENDING: "[dim]·[/dim]",
    ExecutionStatus.RUNNING: "[cyan]…[/cyan]",
}


def plan_to_dict(steer_plan: SteerPlan) -> Dict[str, Any]:
    """Serializable view of a computed plan."""
    summary = steer_plan.get_summary()
    return {
        'summary': summary,
        'operations': [
            {
                'release': operation.release_key,
                'action': operation.action.value,
                'description': operation.run.description,
                'command': str(operation.run),
                'undo': str(operation.undo),
            }
            for operation in steer_plan.operations
        ],
        'unchanged': list(steer_plan.unchanged),
        'unmanaged': [release.key for release in steer_plan.unmanaged],
    }


def render_summary(console: Console, steer_plan: SteerPlan) -> None:
    """Print the one-line change summary."""
    summary = steer_plan.get_summary()

    text = Text()
    text.append("Plan: ", style="bold")
    parts = [
        (summary['install'], "to install", "green"),
        (summary['upgrade'], "to upgrade", "yellow"),
        (summary['delete'], "to delete", "red"),
    ]
    for i, (count, label, style) in enumerate(parts):
        if i:
            text.append(", ")
        text.append(f"{count} {label}", style=style if count else "dim")
    text.append(f", {summary['no_op']} unchanged", style="dim")

    console.print(text)


def render_plan(console: Console, steer_plan: SteerPlan, title: str) -> None:
    """Print the ordered operations of a computed plan."""
    console.print(Panel(escape(title), style="bold blue"))
    console.print()
    render_summary(console, steer_plan)
    console.print()

    if not steer_plan.has_changes():
        console.print("[dim]No changes. Releases are up-to-date.[/dim]")
    else:
        table = Table(show_header=True, header_style="bold")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Release", style="cyan")
        table.add_column("Action")
        table.add_column("Command")

        for i, operation in enumerate(steer_plan.operations, 1):
            marker, style = ACTION_STYLES[operation.action]
            table.add_row(
                str(i),
                f"{marker} {operation.release_key}",
                f"[{style}]{operation.action.value}[/{style}]",
                escape(str(operation.run))
            )

        console.print(table)

    if steer_plan.unmanaged:
        console.print()
        console.print("[bold yellow]Deployed releases not in the plan:[/bold yellow]")
        for release in steer_plan.unmanaged:
            console.print(f"  [yellow]?[/yellow] {escape(release.key)} "
                          f"({escape(release.chart_name)} {escape(release.chart_version)})")


def render_result(console: Console, result: ExecutionResult) -> None:
    """Print the outcome of an execution."""
    total = len(result.operation_results)
    succeeded = len(result.get_results_by_status(ExecutionStatus.SUCCEEDED))

    if result.dry_run:
        console.print(Panel.fit(
            f"[cyan]Dry run[/cyan]\n\n"
            f"Operations: {total}",
            title="Nothing Applied",
            border_style="cyan"
        ))
    elif result.is_success():
        console.print(Panel.fit(
            f"[green]✓ Releases converged[/green]\n\n"
            f"Operations: {total}\n"
            f"Duration: {result.duration:.2f}s",
            title="Apply Complete",
            border_style="green"
        ))
    else:
        lines = [
            "[red]✗ Apply failed[/red]\n",
            f"Operations: {total}",
            f"Succeeded before failure: {succeeded}",
        ]
        if result.rollback is not None:
            lines.append(f"Undone: {len(result.rollback.undone)}")
            if result.rollback.failures:
                lines.append(f"[red]Undo failures: {len(result.rollback.failures)}[/red]")
        console.print(Panel.fit("\n".join(lines), title="Apply Failed", border_style="red"))

        pending = result.get_results_by_status(ExecutionStatus.PENDING)
        if pending:
            console.print("\n[bold]Not started:[/bold]")
            for op_result in pending:
                console.print(f"  {STATUS_MARKS[op_result.status]} {escape(op_result.operation.run.description)}")


def render_progress(console: Console, description: str, status: ExecutionStatus) -> None:
    """Print one progress line; running operations are announced, not marked."""
    if status == ExecutionStatus.RUNNING:
        console.print(f"[cyan]→[/cyan] {escape(description)}")
        return
    console.print(f"  {STATUS_MARKS[status]} {escape(description)}")


def render_validation_errors(console: Console, error: ValidationError) -> None:
    """Print schema and plan errors one per line."""
    console.print(f"[red]{escape(error.message)}[/red]")
    for item in error.errors:
        location = ".".join(str(part) for part in item.get('loc', []))
        message = escape(str(item.get("msg")))
        console.print(f"  • {escape(location)}: {message}" if location else f"  • {message}")
