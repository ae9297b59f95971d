"""Main CLI entry point."""

import sys

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from helm_steer import __version__
from helm_steer.cli.output import (
    plan_to_dict,
    render_plan,
    render_progress,
    render_result,
    render_validation_errors
)
from helm_steer.config.parser import PlanLoader
from helm_steer.config.settings import load_settings
from helm_steer.helm.client import HelmReleaseManager
from helm_steer.orchestrator.executor import ExecutionStatus
from helm_steer.orchestrator.orchestrator import SteerOrchestrator
from helm_steer.orchestrator.reconciler import UnmanagedPolicy
from helm_steer.utils.errors import SteerError, ValidationError, error_handler
from helm_steer.utils.logging import get_logger, setup_logging

console = Console()
logger = get_logger(__name__)


@click.group()
@click.version_option(__version__, prog_name='helm-steer')
@click.option('--config', 'config_path', type=click.Path(dir_okay=False),
              help='Path to settings file (default: ~/.helm-steer.yaml)')
@click.option('--log-level', default=None, type=click.Choice(['debug', 'info', 'warning', 'error']),
              help='Log level (overrides settings)')
@click.pass_context
def cli(ctx, config_path, log_level):
    """Converge Helm releases to a declarative plan."""
    ctx.ensure_object(dict)

    try:
        settings = load_settings(config_path)
    except SteerError as e:
        console.print(f"[red]Error loading settings:[/red] {escape(str(e))}")
        sys.exit(1)

    ctx.obj['settings'] = settings
    ctx.obj['log_level'] = log_level or settings.log_level

    setup_logging(ctx.obj['log_level'], settings.log_dir)


def create_orchestrator(ctx, prune: bool) -> SteerOrchestrator:
    """Create orchestrator backed by the configured helm binary."""
    settings = ctx.obj['settings']
    release_manager = HelmReleaseManager(settings.helm_binary)
    policy = UnmanagedPolicy.PRUNE if prune else UnmanagedPolicy.IGNORE
    return SteerOrchestrator(release_manager, policy)


def report_error(error: SteerError) -> None:
    """Print a steer error and exit with status 1."""
    if isinstance(error, ValidationError):
        render_validation_errors(console, error)
    else:
        error_handler.log_error(error)
        console.print(f"[red]Error:[/red] {escape(error.message)}")
    sys.exit(1)


@cli.command()
@click.argument('plan', type=click.Path(dir_okay=False))
@click.option('-n', '--namespace', 'namespaces', multiple=True,
              help='Only act on this namespace (repeatable)')
@click.option('--dry-run', is_flag=True, help='Show the operations without running them')
@click.option('--prune', is_flag=True, help='Delete deployed releases missing from the plan')
@click.option('-d', '--debug', is_flag=True, help='Log every executed command')
@click.option('-v', '--verbose', is_flag=True, help='Stream helm output to stderr')
@click.pass_context
def apply(ctx, plan, namespaces, dry_run, prune, debug, verbose):
    """Bring the deployed releases in line with PLAN."""
    if debug:
        setup_logging('debug', ctx.obj['settings'].log_dir)

    try:
        orchestrator = create_orchestrator(ctx, prune)
        loaded = orchestrator.load_plan(plan)
        steer_plan = orchestrator.plan(loaded, namespaces)

        render_plan(console, steer_plan, f"Applying {plan}" + (" (dry run)" if dry_run else ""))

        if not steer_plan.has_changes():
            return

        console.print()

        def progress_callback(description: str, status: ExecutionStatus, message):
            render_progress(console, description, status)

        result = orchestrator.apply(
            steer_plan,
            dry_run=dry_run,
            output=sys.stderr if verbose else None,
            progress_callback=progress_callback
        )

        console.print()
        render_result(console, result)

        if result.error is not None:
            report_error(result.error)

    except SteerError as e:
        report_error(e)
    except Exception as e:
        logger.exception("Unexpected error during apply")
        console.print(f"[red]Unexpected error:[/red] {escape(str(e))}")
        sys.exit(1)


@cli.command()
@click.argument('plan', type=click.Path(dir_okay=False))
@click.option('-n', '--namespace', 'namespaces', multiple=True,
              help='Only consider this namespace (repeatable)')
@click.option('--prune', is_flag=True, help='Include deletes of deployed releases missing from the plan')
@click.option('--json-output', is_flag=True, help='Output in JSON format')
@click.pass_context
def diff(ctx, plan, namespaces, prune, json_output):
    """Show the operations PLAN would run, in order."""
    try:
        orchestrator = create_orchestrator(ctx, prune)
        loaded = orchestrator.load_plan(plan)
        steer_plan = orchestrator.plan(loaded, namespaces)

        if json_output:
            console.print_json(data=plan_to_dict(steer_plan))
        else:
            render_plan(console, steer_plan, f"Diff for {plan}")

    except SteerError as e:
        report_error(e)
    except Exception as e:
        logger.exception("Failed to generate diff")
        console.print(f"[red]Unexpected error:[/red] {escape(str(e))}")
        sys.exit(1)


@cli.command()
@click.argument('plan', type=click.Path(dir_okay=False))
def validate(plan):
    """Load and validate PLAN without contacting the cluster."""
    try:
        loaded = PlanLoader(plan).load()
    except SteerError as e:
        report_error(e)
        return

    releases = list(loaded.releases())
    console.print(Panel.fit(
        f"[green]✓ Plan is valid[/green]\n\n"
        f"Version: {loaded.version}\n"
        f"Namespaces: {len(loaded.namespaces)}\n"
        f"Releases: {len(releases)}",
        title=plan,
        border_style="green"
    ))


def main():
    """Main entry point."""
    cli(obj={})


if __name__ == '__main__':
    main()
