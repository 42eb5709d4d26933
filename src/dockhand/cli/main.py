"""Main CLI implementation using Typer."""

from pathlib import Path
from typing import Any, Callable, List, Optional

import typer
from rich.console import Console

from dockhand.cli.commands import (
    load_settings,
    recover_containers,
    run_manifest,
    show_info,
    show_plan,
)
from dockhand.engine.errors import DockhandError


# Create Typer app
app = typer.Typer(
    name="dockhand",
    help="Dockhand - declarative container composition for a single Docker host",
    add_completion=False,
)

# Console for rich output
console = Console()
stderr_console = Console(stderr=True)


def _run_cli_command(handler: Callable[..., Any], ctx: typer.Context, as_json: bool = False, **kwargs: Any):
    """Helper to run a CLI command with loaded settings and error handling."""
    out = stderr_console if as_json else console
    try:
        settings = load_settings(ctx.obj["config"], ctx.obj["log_level"], as_json=as_json)
        handler(settings, as_json=as_json, **kwargs)
    except DockhandError as e:
        out.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


@app.callback()
def callback(
    ctx: typer.Context,
    log_level: Optional[str] = typer.Option(
        None, "--log-level", "-l", help="Log level (DEBUG, INFO, WARNING, ERROR)"
    ),
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Settings file (default: ~/.dockhand.yaml)"
    ),
):
    """Global options."""
    ctx.obj = {"log_level": log_level, "config": config}


@app.command("run")
def run_command(
    ctx: typer.Context,
    file: str = typer.Option(
        "compose.yml", "--file", "-f", help="Manifest file, '-' reads stdin"
    ),
    var: List[str] = typer.Option(
        [], "--var", help="Template variable key=value, repeatable"
    ),
    dry: bool = typer.Option(False, "--dry", "-d", help="Print the actions, do not execute"),
    force: bool = typer.Option(False, "--force", help="Recreate every existing container"),
    wait: float = typer.Option(
        1.0, "--wait", help="Seconds to wait before checking started containers are still up, 0 disables"
    ),
    json_output: bool = typer.Option(False, "--json", help="Print a JSON report"),
    namespace: Optional[str] = typer.Option(
        None, "--namespace", "-n", help="Override the manifest namespace"
    ),
):
    """Create, recreate and remove containers to match the manifest."""
    _run_cli_command(
        run_manifest, ctx, as_json=json_output,
        file=file, vars=var, namespace=namespace, dry_run=dry, force=force, wait=wait,
    )


@app.command("rm")
def rm_command(
    ctx: typer.Context,
    file: str = typer.Option(
        "compose.yml", "--file", "-f", help="Manifest file, '-' reads stdin"
    ),
    var: List[str] = typer.Option(
        [], "--var", help="Template variable key=value, repeatable"
    ),
    dry: bool = typer.Option(False, "--dry", "-d", help="Print the actions, do not execute"),
    json_output: bool = typer.Option(False, "--json", help="Print a JSON report"),
    namespace: Optional[str] = typer.Option(
        None, "--namespace", "-n", help="Override the manifest namespace"
    ),
):
    """Remove every container of the manifest namespace."""
    _run_cli_command(
        run_manifest, ctx, as_json=json_output,
        file=file, vars=var, namespace=namespace, dry_run=dry, remove=True,
    )


@app.command("plan")
def plan_command(
    ctx: typer.Context,
    file: str = typer.Option(
        "compose.yml", "--file", "-f", help="Manifest file, '-' reads stdin"
    ),
    var: List[str] = typer.Option(
        [], "--var", help="Template variable key=value, repeatable"
    ),
    force: bool = typer.Option(False, "--force", help="Plan a recreate of every existing container"),
    json_output: bool = typer.Option(False, "--json", help="Dump the action tree as JSON"),
    namespace: Optional[str] = typer.Option(
        None, "--namespace", "-n", help="Override the manifest namespace"
    ),
):
    """Show what run would do."""
    _run_cli_command(
        show_plan, ctx, as_json=json_output,
        file=file, vars=var, namespace=namespace, force=force,
    )


@app.command("recover")
def recover_command(
    ctx: typer.Context,
    dry: bool = typer.Option(False, "--dry", "-d", help="Print the actions, do not execute"),
    wait: float = typer.Option(
        1.0, "--wait", help="Seconds to wait before checking started containers are still up, 0 disables"
    ),
    json_output: bool = typer.Option(False, "--json", help="Print a JSON report"),
):
    """Start managed containers of every namespace after a reboot or daemon restart."""
    _run_cli_command(recover_containers, ctx, as_json=json_output, dry_run=dry, wait=wait)


@app.command("info")
def info_command(
    ctx: typer.Context,
    all_info: bool = typer.Option(False, "--all", "-a", help="Show the full daemon info"),
    json_output: bool = typer.Option(False, "--json", help="Print as JSON"),
):
    """Show docker connection settings and versions."""
    _run_cli_command(show_info, ctx, as_json=json_output, advanced=all_info)


def main():
    """Main entry point for CLI."""
    app()
