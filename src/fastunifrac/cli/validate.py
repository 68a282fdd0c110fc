"""
Validate command: check how a sample table lines up with a tree.

Reports leaf/taxon overlap, unknown taxa, leaves missing from the table and
samples that would be empty, without computing any distances.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from fastunifrac.cli.utils import configure_logging, spinner_progress
from fastunifrac.core.exceptions import FastUnifracError
from fastunifrac.core.table import TableAlignment
from fastunifrac.core.tree import PhyloTree

console = Console()

_MAX_LISTED = 10


def validate(
    tree: Path = typer.Option(
        ...,
        "--tree",
        "-t",
        help="Rooted phylogenetic tree in Newick format",
        exists=True,
        dir_okay=False,
    ),
    input_table: Path = typer.Option(
        ...,
        "--input",
        "-i",
        help="Tab-delimited sample table",
        exists=True,
        dir_okay=False,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="List every unknown taxon and empty sample",
    ),
) -> None:
    """
    Check that a sample table can be scored against a tree.

    Exits with code 1 when no table taxon is a leaf of the tree.
    """
    from fastunifrac.core.io_utils import read_sample_table, read_tree

    configure_logging(verbose=verbose, quiet=not verbose)

    try:
        with spinner_progress("Loading tree and sample table...", console):
            phylo = read_tree(tree)
            table = read_sample_table(input_table)
            alignment = table.align_to_tree(phylo)
    except FastUnifracError as e:
        console.print(f"[red]Error: {escape(e.full_message)}[/red]")
        raise typer.Exit(code=1) from None

    _display_alignment_table(phylo, alignment)

    limit = None if verbose else _MAX_LISTED
    if alignment.unknown_taxa:
        _print_names("Taxa not in tree", alignment.unknown_taxa, limit)
    if alignment.empty_samples:
        _print_names("Empty samples", alignment.empty_samples, limit)

    if alignment.n_matched == 0:
        console.print("[red]Error: No taxa in the sample table match tree leaf names[/red]")
        raise typer.Exit(code=1) from None

    console.print("[bold green]Sample table is compatible with the tree[/bold green]")


def _display_alignment_table(tree: PhyloTree, alignment: TableAlignment) -> None:
    """Display overlap statistics as a Rich table."""
    table = Table(title="Tree / Table Alignment", show_header=True)

    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Count", justify="right", style="magenta")

    table.add_row("Tree leaves", f"{tree.n_leaves:,}")
    table.add_row("Tree edges", f"{tree.n_edges:,}")
    table.add_row("Samples", f"{len(alignment.sample_names):,}")
    table.add_row("Table taxa", f"{alignment.n_table_taxa:,}")
    table.add_section()
    table.add_row("Matched taxa", f"{alignment.n_matched:,}", style="green")
    table.add_row(
        "Taxa not in tree",
        f"{len(alignment.unknown_taxa):,}",
        style="yellow" if alignment.unknown_taxa else None,
    )
    table.add_row("Leaves not in table", f"{len(alignment.missing_leaves):,}", style="dim")
    table.add_row(
        "Empty samples",
        f"{len(alignment.empty_samples):,}",
        style="yellow" if alignment.empty_samples else None,
    )

    console.print()
    console.print(table)
    console.print()


def _print_names(label: str, names: tuple[str, ...], limit: int | None) -> None:
    shown = names if limit is None else names[:limit]
    console.print(f"[yellow]{label}:[/yellow] {', '.join(shown)}")
    if len(shown) < len(names):
        console.print(f"[dim]  ... and {len(names) - len(shown)} more (use --verbose)[/dim]")
