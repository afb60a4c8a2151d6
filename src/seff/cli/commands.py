"""CLI command implementations."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer

from seff.cli import app
from seff.cli.errors import handle_error

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from seff.engine.types import ChangeEvent, ProgressCallback, TransitionResult

ProjectPath = Annotated[
    Path,
    typer.Argument(help="Path to the project file."),
]

NoColor = Annotated[
    bool,
    typer.Option("--no-color", help="Disable colored output."),
]

AutoApprove = Annotated[
    bool,
    typer.Option("--auto-approve", help="Skip interactive approval."),
]


def _use_color(no_color: bool) -> bool:
    """Determine whether to use color output."""
    return not (no_color or os.environ.get("NO_COLOR"))


def _run_with_progress(
    run: Callable[[ProgressCallback], Awaitable[TransitionResult]],
    *,
    description: str,
    color: bool,
) -> TransitionResult:
    """Run a transition behind a Rich spinner, printing one line per change."""
    from rich.console import Console
    from rich.progress import Progress, SpinnerColumn, TextColumn

    from seff.cli.formatting import format_event

    console = Console(no_color=not color, highlight=False)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task(description, total=None)

        def on_progress(event: ChangeEvent | None) -> None:
            if event is None:
                return
            progress.console.print(format_event(event, color=False), markup=False)
            progress.advance(task)

        return asyncio.run(run(on_progress))


@app.command()
def deploy(
    project: ProjectPath,
    no_color: NoColor = False,
) -> None:
    """Create, update and remove resources to match the project file."""
    from seff.cli.formatting import format_summary
    from seff.config import deploy as deploy_fn
    from seff.config import load

    color = _use_color(no_color)
    try:
        cfg = load(project)
        result = _run_with_progress(
            lambda progress: deploy_fn(cfg, progress=progress),
            description=f"Deploying {cfg.name}",
            color=color,
        )
    except Exception as exc:
        raise typer.Exit(handle_error(exc, color=color)) from exc

    if not result.changed:
        typer.echo("No changes. Resources are up-to-date.")
        return
    typer.echo(format_summary(result.summary(), header="Deploy", color=color))


@app.command()
def destroy(
    project: ProjectPath,
    auto_approve: AutoApprove = False,
    no_color: NoColor = False,
) -> None:
    """Remove every resource recorded in the project's state."""
    from seff.cli.formatting import format_summary
    from seff.config import destroy as destroy_fn
    from seff.config import load, load_state

    color = _use_color(no_color)
    try:
        cfg = load(project)
        recorded = load_state(cfg)
    except Exception as exc:
        raise typer.Exit(handle_error(exc, color=color)) from exc

    if not len(recorded):
        typer.echo("No resources to destroy.")
        raise typer.Exit(0)

    if not auto_approve:
        count = len(recorded)
        try:
            typer.confirm(
                f"Do you really want to destroy {count} resource{'s' if count != 1 else ''}?",
                abort=True,
            )
        except typer.Abort as e:
            typer.echo("Destroy canceled.", err=True)
            raise typer.Exit(1) from e

    try:
        result = _run_with_progress(
            lambda progress: destroy_fn(cfg, progress=progress),
            description=f"Destroying {cfg.name}",
            color=color,
        )
    except Exception as exc:
        raise typer.Exit(handle_error(exc, color=color)) from exc

    typer.echo(format_summary(result.summary(), header="Destroy", color=color))


@app.command()
def state(
    project: ProjectPath,
    no_color: NoColor = False,
) -> None:
    """Show the resources recorded in the project's state."""
    from rich.console import Console

    from seff.cli.formatting import state_table
    from seff.config import load, load_state

    color = _use_color(no_color)
    try:
        cfg = load(project)
        graph = load_state(cfg)
    except Exception as exc:
        raise typer.Exit(handle_error(exc, color=color)) from exc

    if not len(graph):
        typer.echo("No resources recorded.")
        return
    Console(no_color=not color, width=200).print(state_table(graph))


@app.command("test")
def check(
    project: ProjectPath,
    no_color: NoColor = False,
) -> None:
    """Check that the project file and its recorded state load, without deploying."""
    from seff.config import build_graph, default_registry, load, load_state

    color = _use_color(no_color)
    try:
        cfg = load(project)
        registry = default_registry()
        graph = build_graph(cfg, registry)
        recorded = load_state(cfg, registry=registry)
    except Exception as exc:
        raise typer.Exit(handle_error(exc, color=color)) from exc

    declared = len(graph)
    typer.echo(
        f"Project {cfg.name} is valid: {declared} resource{'s' if declared != 1 else ''} "
        f"declared, {len(recorded)} recorded."
    )
