"""Main CLI implementation using Typer."""

import asyncio
from pathlib import Path
from typing import Any, Callable, Optional

import typer
from rich.console import Console
from rich.markup import escape

from dockyard.agent.config import ConfigManager
from dockyard.agent.main import create_state_engine, default_config_dir, run_agent
from dockyard.cli import commands
from dockyard.exceptions import DockyardError
from dockyard.utils.logging import setup_logging


app = typer.Typer(
    name="dockyard",
    help="Dockyard - declarative container image reconciliation",
    add_completion=False,
)

console = Console()

ConfigDirOption = typer.Option(
    None, "--config-dir", "-c", help="Configuration directory (default: $DOCKYARD_CONFIG_DIR or ./configs)"
)


def _load_config(config_dir: Optional[Path]) -> ConfigManager:
    manager = ConfigManager(config_dir or default_config_dir())
    asyncio.run(manager.load())
    setup_logging(manager.config.agent.log_level)
    return manager


def _fail(message: str, error: Exception):
    console.print(f"[red]Error:[/red] {escape(message)}")
    raise typer.Exit(1) from error


def _run_cli_command(handler: Callable[..., Any], config_dir: Optional[Path], **kwargs: Any) -> Any:
    """Run an async command against a freshly wired state engine."""
    state_engine = None
    try:
        manager = _load_config(config_dir)
        state_engine = create_state_engine(manager)
        return asyncio.run(handler(state_engine, **kwargs))
    except DockyardError as e:
        _fail(f"{e.kind}: {e}", e)
    except (ValueError, FileNotFoundError) as e:
        _fail(str(e), e)
    finally:
        if state_engine is not None:
            state_engine.provider.engine.close()


@app.command("plan")
def plan_command(
    changes_only: bool = typer.Option(False, "--changes", help="Hide resources without changes"),
    config_dir: Optional[Path] = ConfigDirOption,
):
    """Show what apply would change."""
    _run_cli_command(commands.show_plan, config_dir, changes_only=changes_only)


@app.command("apply")
def apply_command(
    quiet: bool = typer.Option(False, "--quiet", "-q", help="No progress spinner"),
    config_dir: Optional[Path] = ConfigDirOption,
):
    """Build, pull, update or remove images to match configuration."""
    report = _run_cli_command(commands.apply, config_dir, quiet=quiet)
    if not report.ok:
        raise typer.Exit(1)


@app.command("status")
def status_command(config_dir: Optional[Path] = ConfigDirOption):
    """Show recorded images."""
    _run_cli_command(commands.show_status, config_dir)


@app.command("destroy")
def destroy_command(
    resource: str = typer.Argument(..., help="Resource name"),
    force: bool = typer.Option(False, "--force", "-f", help="Do not ask for confirmation"),
    config_dir: Optional[Path] = ConfigDirOption,
):
    """Remove an image and forget its record."""
    if not force:
        confirm = typer.confirm(f"Destroy image {resource}?")
        if not confirm:
            raise typer.Abort()
    _run_cli_command(commands.destroy, config_dir, resource=resource)


@app.command("cancel")
def cancel_command(
    build_id: str = typer.Argument(..., help="Build ID given in the image's build block"),
    config_dir: Optional[Path] = ConfigDirOption,
):
    """Cancel a running build by its build ID."""
    _run_cli_command(commands.cancel_build, config_dir, build_id=build_id)


@app.command("validate")
def validate_command(config_dir: Optional[Path] = ConfigDirOption):
    """Validate configuration files."""
    try:
        manager = _load_config(config_dir)
    except DockyardError as e:
        _fail(f"{e.kind}: {e}", e)
    except (ValueError, FileNotFoundError) as e:
        _fail(str(e), e)
    if not commands.validate_config(manager):
        raise typer.Exit(1)


@app.command("agent")
def agent_command(config_dir: Optional[Path] = ConfigDirOption):
    """Run the reconciliation agent in the foreground."""
    try:
        asyncio.run(run_agent(config_dir))
    except KeyboardInterrupt:
        console.print("\nAgent shutdown requested")


def main():
    """Main entry point for CLI."""
    app()
