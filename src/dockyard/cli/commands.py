"""Command implementations for CLI."""

from typing import List, Optional

from rich.console import Console
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from dockyard.agent.config import ConfigManager
from dockyard.agent.engine import ReconcileReport, StateEngine
from dockyard.core.fingerprint import spec_fingerprint
from dockyard.core.plan import Plan, PlanAction


console = Console()

_ACTION_STYLE = {
    PlanAction.CREATE: "green",
    PlanAction.UPDATE: "yellow",
    PlanAction.REPLACE: "magenta",
    PlanAction.DELETE: "red",
    PlanAction.NOOP: "dim",
}


def render_plan(plans: List[Plan]):
    """Print a plan table."""
    table = Table(title="Plan")
    table.add_column("Resource", style="cyan")
    table.add_column("Action")
    table.add_column("Image", style="magenta")
    table.add_column("Changed")
    table.add_column("Fingerprint", style="dim")

    for item in plans:
        style = _ACTION_STYLE[item.action]
        spec = item.desired or item.recorded.spec
        table.add_row(
            item.resource,
            f"[{style}]{item.action.value}[/{style}]",
            spec.name,
            ", ".join(item.changed_fields),
            spec_fingerprint(spec)[:12],
        )
    console.print(table)


def render_report(report: ReconcileReport):
    """Print the outcome of a reconciliation pass."""
    for resource, action in report.applied.items():
        if action is not PlanAction.NOOP:
            console.print(f"[green]✓[/green] {resource}: {action.value}")
    for resource in report.drifted:
        console.print(f"[yellow]![/yellow] {resource}: image was removed outside dockyard")
    for resource, error in report.failed.items():
        console.print(f"[red]✗[/red] {resource}: {error.kind}: {escape(error.message)}")


async def show_plan(state_engine: StateEngine, changes_only: bool = False):
    """Show what apply would do."""
    plans = await state_engine.plan()
    if changes_only:
        plans = [p for p in plans if p.action is not PlanAction.NOOP]
    if not plans:
        console.print("No changes.")
        return
    render_plan(plans)


async def apply(state_engine: StateEngine, quiet: bool = False) -> ReconcileReport:
    """Reconcile all images once."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        disable=quiet,
    ) as progress:
        task = progress.add_task("Reconciling images...", total=None)
        report = await state_engine.reconcile()
        progress.update(task, completed=True)
    render_report(report)
    return report


async def show_status(state_engine: StateEngine):
    """Show recorded image state."""
    statuses = state_engine.get_status()
    if not statuses:
        console.print("No images recorded.")
        return

    table = Table(title="Images")
    table.add_column("Resource", style="cyan")
    table.add_column("Name", style="magenta")
    table.add_column("Mode")
    table.add_column("Image ID", max_width=20)
    table.add_column("Repo digest", style="dim", max_width=50)
    table.add_column("Declared")

    for resource, info in statuses.items():
        declared = "[green]●[/green]" if info["declared"] else "[red]○[/red]"
        table.add_row(
            resource,
            info["name"],
            info["mode"],
            info["image_id"],
            info["repo_digest"] or "-",
            declared,
        )
    console.print(table)


async def destroy(state_engine: StateEngine, resource: str):
    """Remove one image and its record."""
    await state_engine.destroy(resource)
    console.print(f"[green]✓[/green] {resource} destroyed")


async def cancel_build(state_engine: StateEngine, build_id: str):
    """Ask the engine to abort a running build."""
    await state_engine.provider.engine.cancel_build(build_id)
    console.print(f"Cancellation requested for build {build_id}")


def validate_config(config_manager: ConfigManager) -> bool:
    """Print validation results; return True when every image is valid."""
    for resource in sorted(config_manager.images):
        console.print(f"[green]✓[/green] {resource}")
    for resource, error in sorted(config_manager.errors.items()):
        console.print(f"[red]✗[/red] {resource}: {escape(error.message)}")
    return not config_manager.errors
