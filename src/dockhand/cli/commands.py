"""Command implementations for CLI."""

import asyncio
import json
import sys
from pathlib import Path
from typing import Awaitable, Callable, List, Optional

from pydantic import TypeAdapter
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from rich.tree import Tree

from dockhand import __version__
from dockhand.engine.actions import Action, EnsureContainer, NoAction, Step, walk_actions
from dockhand.engine.compose import Compose
from dockhand.engine.config import ConfigManager
from dockhand.engine.errors import DockhandError
from dockhand.engine.manifest import ManifestLoader
from dockhand.engine.report import PlanReport
from dockhand.models.config import DockhandConfig
from dockhand.providers.docker import DockerClient
from dockhand.utils.logging import setup_logging
from dockhand.utils.templates import parse_vars


console = Console()
stderr_console = Console(stderr=True)

ACTION_STYLES = {
    "create": "green",
    "remove": "red",
    "ensure": "yellow",
    "wait": "blue",
}


def load_settings(
    config_file: Optional[Path],
    log_level: Optional[str],
    as_json: bool = False,
) -> DockhandConfig:
    """Load settings and configure logging."""
    settings = asyncio.run(ConfigManager(config_file).load())
    if log_level:
        settings.log_level = log_level.upper()
    # stdout carries only the report in JSON mode
    setup_logging(settings.log_level, stream=sys.stderr if as_json else None)
    return settings


async def _build_compose(
    settings: DockhandConfig,
    file: str,
    vars: List[str],
    namespace: Optional[str],
    **flags,
) -> Compose:
    try:
        variables = parse_vars(vars)
    except ValueError as e:
        raise DockhandError(str(e)) from e

    manifest = await ManifestLoader(variables, namespace=namespace).load(file)
    client = DockerClient(settings.docker, global_=settings.global_)
    return Compose(manifest, client, **flags)


def run_manifest(
    settings: DockhandConfig,
    file: str,
    vars: List[str],
    namespace: Optional[str] = None,
    dry_run: bool = False,
    force: bool = False,
    remove: bool = False,
    wait: float = 0,
    as_json: bool = False,
):
    """Bring the host in line with a manifest."""
    description = "Removing containers..." if remove else "Running manifest..."

    async def _run(report: PlanReport) -> str:
        compose = await _build_compose(
            settings, file, vars, namespace,
            dry_run=dry_run, force=force, remove=remove, wait=wait,
        )
        try:
            await compose.run()
        finally:
            compose.write_plan(report)

        if not report.changed:
            return "Nothing to do, containers are up to date"
        return f"Created {len(report.created)}, removed {len(report.removed)} containers"

    _execute(_run, description, dry_run=dry_run, as_json=as_json)


def recover_containers(
    settings: DockhandConfig,
    dry_run: bool = False,
    wait: float = 0,
    as_json: bool = False,
):
    """Start the managed containers of every namespace that should be running."""

    async def _recover(report: PlanReport) -> str:
        client = DockerClient(settings.docker, global_=settings.global_)
        compose = Compose(None, client, dry_run=dry_run, wait=wait)
        try:
            await compose.recover()
        finally:
            compose.write_plan(report)

        ensured = [a for a in walk_actions(compose.plan) if isinstance(a, EnsureContainer)]
        return f"Checked {len(compose.expected)} containers, ensured {len(ensured)}"

    _execute(_recover, "Recovering containers...", dry_run=dry_run, as_json=as_json)


def _execute(
    handler: Callable[[PlanReport], Awaitable[str]],
    description: str,
    dry_run: bool,
    as_json: bool,
):
    report = PlanReport()

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=stderr_console,
            disable=as_json or dry_run,
        ) as progress:
            task = progress.add_task(description, total=None)
            summary = asyncio.run(handler(report))
            progress.update(task, completed=True)
    except DockhandError as e:
        if as_json:
            console.print_json(report.error(e).to_json())
        raise

    if as_json:
        console.print_json(report.success("").to_json())
        return

    if not dry_run:
        console.print(f"[green]✓[/green] {summary}")


def show_info(settings: DockhandConfig, advanced: bool = False, as_json: bool = False):
    """Print connection settings and the daemon version."""
    client = DockerClient(settings.docker, global_=settings.global_)
    info = asyncio.run(client.info(advanced=advanced))

    if as_json:
        console.print_json(json.dumps(info, default=str))
        return

    table = Table(title="Docker")
    table.add_column("Key", style="cyan")
    table.add_column("Value")

    table.add_row("dockhand", __version__)
    table.add_row("Host", info["host"])
    table.add_row("TLS", "✓" if info["tls_verify"] else "✗")
    for key, value in sorted(info["version"].items()):
        if isinstance(value, (str, int, float, bool)):
            table.add_row(key, str(value))

    console.print(table)

    if advanced:
        details = Table(title="Daemon info")
        details.add_column("Key", style="cyan")
        details.add_column("Value", style="dim", max_width=80)
        for key, value in sorted(info["info"].items()):
            details.add_row(key, str(value))
        console.print(details)


def show_plan(
    settings: DockhandConfig,
    file: str,
    vars: List[str],
    namespace: Optional[str] = None,
    force: bool = False,
    remove: bool = False,
    as_json: bool = False,
):
    """Print the plan without executing it."""

    async def _plan() -> Compose:
        compose = await _build_compose(
            settings, file, vars, namespace,
            dry_run=True, force=force, remove=remove,
        )
        await compose.compute_plan()
        return compose

    compose = asyncio.run(_plan())

    if as_json:
        adapter = TypeAdapter(List[Action])
        console.print_json(adapter.dump_json(compose.plan).decode())
        return

    console.print(render_plan(compose.plan, compose.manifest.namespace))


def render_plan(plan: List[Action], namespace: str) -> Tree:
    """Render a plan as a rich tree."""
    tree = Tree(f"[bold]Plan for namespace {namespace}[/bold]")
    if not plan:
        tree.add("[dim]nothing to do[/dim]")
    for action in plan:
        _add_node(tree, action)
    return tree


def _add_node(parent: Tree, action: Action):
    if isinstance(action, Step):
        mode = "concurrently" if action.concurrent else "in order"
        branch = parent.add(f"[cyan]run {mode}[/cyan]")
        for child in action.actions:
            _add_node(branch, child)
    elif isinstance(action, NoAction):
        parent.add("[dim]noop[/dim]")
    else:
        style = ACTION_STYLES.get(action.kind, "white")
        parent.add(f"[{style}]{action.describe()}[/{style}]")
