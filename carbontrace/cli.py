# -*- coding: utf-8 -*-
"""
carbontrace CLI
===============

Inspect carbon tree records and run what-if simulations from the shell.
"""

from pathlib import Path
from typing import List, Optional, Tuple

import typer
from rich.console import Console
from rich.table import Table

from carbontrace._version import __version__
from carbontrace.carbon_tree import CarbonTree
from carbontrace.config import configure_logging
from carbontrace.diagnostics import DiagnosticLevel, get_sink
from carbontrace.exceptions import CarbonTraceException
from carbontrace.formatting import diff_to_string
from carbontrace.io import load_record, load_token
from carbontrace.lifecycle import LifeCyclePhases
from carbontrace.links import build_links, build_nodes

app = typer.Typer(
    name="carbontrace",
    help="carbontrace: Carbon footprint aggregation and what-if simulation",
    no_args_is_help=True,
    add_completion=False,
)
console = Console()


@app.callback()
def _root(
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Logging level (defaults to CT_LOG_LEVEL)"
    ),
):
    """
    carbontrace - trace the CO2eq of composite products
    """
    configure_logging(log_level)


def _fail(exc: CarbonTraceException) -> None:
    console.print(f"[red][FAIL][/red] {exc.message}")
    for key, value in exc.context.items():
        console.print(f"       {key}: {value}")
    raise typer.Exit(1)


def _print_diagnostics() -> None:
    for diagnostic in get_sink().drain():
        tag = "[red][ERROR][/red]" if diagnostic.level is DiagnosticLevel.ERROR else "[yellow][WARN][/yellow]"
        console.print(f"{tag} {diagnostic.message}")
        if diagnostic.details:
            console.print(f"       {diagnostic.details}")


def _load_tree(record_path: Path, changes: Optional[str]) -> CarbonTree:
    record = load_record(record_path)
    if changes:
        return CarbonTree.replay(record, load_token(changes))
    return CarbonTree.from_record(record)


def _split_assignment(value: str, option: str) -> Tuple[str, str]:
    key, sep, rest = value.rpartition("=")
    if not sep or not key or not rest:
        console.print(f"[red][FAIL][/red] {option} expects ID=VALUE, got '{value}'")
        raise typer.Exit(2)
    return key, rest


@app.command()
def version():
    """Show carbontrace version"""
    console.print(f"[bold green]carbontrace v{__version__}[/bold green]")


@app.command()
def phases(text: str = typer.Argument(..., help="Free-text life cycle phases, e.g. 'A1-A3, C1'")):
    """Parse life cycle phases and show their canonical form"""
    parsed = LifeCyclePhases.parse(text)
    table = Table(title="Life Cycle Phases", show_header=True, header_style="bold cyan")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Canonical", parsed.to_string(include_description_if_none_or_one=True))
    table.add_row("Phases", ", ".join(parsed.phases) or "-")
    table.add_row("Stages", ", ".join(parsed.stages) or "-")
    table.add_row("Color", "rgb({:.0f}, {:.0f}, {:.0f})".format(*parsed.color))
    console.print(table)


@app.command()
def summary(
    record: Path = typer.Argument(..., help="Carbon tree record (.json, .yaml)", exists=True),
    changes: Optional[str] = typer.Option(
        None, "--changes", "-c", help="Simulation token or file containing one"
    ),
):
    """Show current and original CO2eq per node"""
    try:
        tree = _load_tree(record, changes)
        table = Table(title=f"Carbon Footprint: {tree.name or tree.asset.id}", show_header=True, header_style="bold cyan")
        table.add_column("Node", style="cyan")
        table.add_column("Bulk", justify="right")
        table.add_column("Product kg CO2e", justify="right")
        table.add_column("Δ Product", justify="right")
        table.add_column("Transport kg CO2e", justify="right")
        table.add_column("Δ Total", justify="right")
        table.add_column("Phases", style="white")

        def add_row(node: CarbonTree, index: int, depth: int, bulk: float) -> None:
            status = ""
            if node.parent is not None:
                modification = node.parent.modification(node.asset.id)
                if modification:
                    status = f" [yellow]({modification})[/yellow]"
            table.add_row(
                f"{'  ' * depth}{node.name or node.asset.id}{status}",
                f"{bulk:g}",
                f"{node.product_co2eq:,.2f}",
                diff_to_string(node.product_co2eq_diff, maximum_fraction_digits=2),
                f"{node.transport_co2eq:,.2f}",
                diff_to_string(node.total_co2eq_diff, maximum_fraction_digits=2),
                node.covered_life_cycle_phases.to_string(),
            )

        tree.for_each(add_row)
    except CarbonTraceException as exc:
        _fail(exc)

    console.print(table)
    console.print(f"Components: {tree.all_components_count:g} ({diff_to_string(tree.all_components_count_diff)})")
    _print_diagnostics()


@app.command()
def links(
    record: Path = typer.Argument(..., help="Carbon tree record (.json, .yaml)", exists=True),
    changes: Optional[str] = typer.Option(
        None, "--changes", "-c", help="Simulation token or file containing one"
    ),
):
    """List the product and transport links of the current view"""
    try:
        tree = _load_tree(record, changes)
        flat = build_links(tree)
    except CarbonTraceException as exc:
        _fail(exc)

    table = Table(title="Carbon Links", show_header=True, header_style="bold cyan")
    table.add_column("Type", style="cyan")
    table.add_column("Source")
    table.add_column("Target")
    table.add_column("kg CO2e", justify="right")
    table.add_column("Phases")
    for link in flat:
        table.add_row(
            link.type.value,
            link.source.name or link.source.asset.id,
            link.target.name or link.target.asset.id,
            f"{link.value:,.2f}",
            link.product_life_cycle_phases.to_string(),
        )
    console.print(table)
    _print_diagnostics()


@app.command()
def simulate(
    record: Path = typer.Argument(..., help="Carbon tree record (.json, .yaml)", exists=True),
    changes: Optional[str] = typer.Option(
        None, "--changes", "-c", help="Start from this simulation token"
    ),
    delete: Optional[List[str]] = typer.Option(
        None, "--delete", "-d", help="Asset id to remove (repeatable)"
    ),
    bulk: Optional[List[str]] = typer.Option(
        None, "--bulk", "-b", help="ID=COUNT bulk count override (repeatable)"
    ),
    swap: Optional[List[str]] = typer.Option(
        None, "--swap", "-s", help="ID=RECORD replace a connection with another record (repeatable)"
    ),
    modify: Optional[List[str]] = typer.Option(
        None, "--modify", "-m", help="ID=RECORD replace a connection with a modified record (repeatable)"
    ),
):
    """Apply edits and print the resulting simulation token"""
    try:
        tree = _load_tree(record, changes)

        def find_connection(asset_id: str) -> CarbonTree:
            node = build_nodes(tree).get(asset_id)
            if node is None or node.parent is None:
                console.print(f"[red][FAIL][/red] No connection with asset id '{asset_id}'")
                raise typer.Exit(1)
            return node

        for asset_id in delete or []:
            node = find_connection(asset_id)
            node.parent.delete_connection(asset_id)
        for assignment in bulk or []:
            asset_id, value = _split_assignment(assignment, "--bulk")
            try:
                count = float(value)
            except ValueError:
                console.print(f"[red][FAIL][/red] Bulk count '{value}' is not a number")
                raise typer.Exit(2)
            find_connection(asset_id).bulk_count = count
        for option, edits in (("--swap", swap), ("--modify", modify)):
            for assignment in edits or []:
                asset_id, path = _split_assignment(assignment, option)
                parent = find_connection(asset_id).parent
                replacement = load_record(Path(path))
                if option == "--swap":
                    parent.swap_connection(asset_id, replacement)
                else:
                    parent.modify_connection(asset_id, replacement)

        token = tree.stringify_changes()
        total, diff = tree.total_co2eq, tree.total_co2eq_diff
    except CarbonTraceException as exc:
        _fail(exc)

    console.print(f"[bold]Total:[/bold] {total:,.2f} kg CO2e ({diff_to_string(diff, maximum_fraction_digits=2)})")
    if token:
        console.print("[bold]Token:[/bold]")
        console.print(token, soft_wrap=True, highlight=False)
    else:
        console.print("[blue][INFO][/blue] No changes")
    _print_diagnostics()


def main() -> None:
    app()


if __name__ == "__main__":
    main()
