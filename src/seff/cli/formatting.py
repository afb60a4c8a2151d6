"""Event, summary and state rendering for the CLI."""

from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple

import typer
from rich.table import Table

if TYPE_CHECKING:
    from collections.abc import Callable

    from seff.engine.resource_graph import ResourceGraph
    from seff.engine.types import ChangeEvent


class _ActionStyle(NamedTuple):
    color: str
    symbol: str
    done_verb: str


_ACTION_STYLES: dict[str, _ActionStyle] = {
    "create": _ActionStyle("green", "+", "created"),
    "update": _ActionStyle("yellow", "~", "updated"),
    "remove": _ActionStyle("red", "-", "removed"),
}

_SUMMARY_VERBS = ("created", "updated", "removed")
_SUMMARY_COLORS = ("green", "yellow", "red")


def styler(color: bool) -> Callable[..., str]:
    """Return ``typer.style`` when *color* is True, otherwise a passthrough."""
    if color:
        return typer.style
    return lambda text, **_kw: text


def format_event(event: ChangeEvent, *, color: bool = True) -> str:
    """Render ``  + LocalFile.readme: created``."""
    s = _ACTION_STYLES[event.type.value]
    res = event.resource
    return styler(color)(f"  {s.symbol} {res.resource_type}.{res.name}: {s.done_verb}", fg=s.color)


def format_summary(summary: dict[str, int], *, header: str = "Deploy", color: bool = True) -> str:
    """Render ``Deploy complete! Resources: 2 created, 0 updated, 1 removed.``"""
    style = styler(color)
    counts = (summary.get("create", 0), summary.get("update", 0), summary.get("remove", 0))
    parts = [
        style(f"{n} {verb}", fg=fg) if n else f"{n} {verb}"
        for n, verb, fg in zip(counts, _SUMMARY_VERBS, _SUMMARY_COLORS, strict=True)
    ]
    title = style(f"{header} complete!", fg="green", bold=True)
    return f"{title} Resources: {', '.join(parts)}."


def state_table(graph: ResourceGraph) -> Table:
    """Tabulate recorded resources in creation order."""
    table = Table(title=f"State: {graph.name}" if graph.name else None)
    table.add_column("Type")
    table.add_column("Name")
    table.add_column("Parent")
    table.add_column("Dependencies")
    table.add_column("CRN", overflow="fold")
    for res in graph:
        parent = res.parent
        table.add_row(
            res.resource_type,
            res.name,
            f"{parent.resource_type}.{parent.name}" if parent is not None else "",
            ", ".join(
                f"{tag}={dep.resource_type}.{dep.name}"
                for tag, dep in sorted(res.dependencies.items())
            ),
            res.crn or "",
        )
    return table
