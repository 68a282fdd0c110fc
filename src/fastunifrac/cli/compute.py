"""
Compute command: unweighted UniFrac distance matrix from a tree and a table.
"""

from __future__ import annotations

import logging
from pathlib import Path

import typer
import yaml
from rich.console import Console
from rich.markup import escape

from fastunifrac.cli.utils import (
    QuietConsole,
    configure_logging,
    spinner_progress,
    validate_output_format_extension,
)
from fastunifrac.core.exceptions import FastUnifracError
from fastunifrac.models.config import UnifracConfig

logger = logging.getLogger(__name__)

console = Console()


def compute(
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
        help="Tab-delimited table: header of sample names, one row per taxon",
        exists=True,
        dir_okay=False,
    ),
    output: Path = typer.Option(
        ...,
        "--output",
        "-o",
        help="Output distance matrix file",
    ),
    config_file: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="YAML configuration file (CLI options take precedence)",
        exists=True,
        dir_okay=False,
    ),
    threads: int | None = typer.Option(
        None,
        "--threads",
        "-p",
        help="Worker threads for the pairwise loop",
        min=1,
    ),
    output_format: str | None = typer.Option(
        None,
        "--format",
        "-f",
        help="Output format: 'tsv', 'csv' or 'parquet' (default: tsv)",
    ),
    precision: int | None = typer.Option(
        None,
        "--precision",
        help="Decimal places in tsv/csv output (default: 6)",
        min=0,
        max=17,
    ),
    empty_samples: str | None = typer.Option(
        None,
        "--empty-samples",
        help="Samples with no taxa in the tree: 'keep' (distance 1.0) or 'reject'",
    ),
    verify: bool = typer.Option(
        False,
        "--verify",
        help="Cross-check every pair against the matrix-product formulation",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose output",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Suppress progress output",
    ),
) -> None:
    """
    Compute pairwise unweighted UniFrac distances between all samples.

    The output is a square matrix whose first row and column hold the
    sample names, with 'Sample' in the corner cell.

    Examples:

        # Default tab-delimited output with 6 decimals
        fastunifrac compute -t tree.nwk -i table.tsv -o distances.tsv

        # Parallel, verified, Parquet output
        fastunifrac compute -t tree.nwk -i table.tsv -o distances.parquet \\
            --format parquet --threads 8 --verify
    """
    from fastunifrac.core.io_utils import read_sample_table, read_tree, write_distance_matrix
    from fastunifrac.core.matrix import UnifracCalculator

    configure_logging(verbose=verbose, quiet=quiet)
    out = QuietConsole(console, quiet=quiet)

    if output_format is not None:
        output_format = output_format.lower()
        if output_format not in ("tsv", "csv", "parquet"):
            console.print(
                f"[red]Error: Invalid format '{output_format}'. "
                f"Use 'tsv', 'csv' or 'parquet'.[/red]"
            )
            raise typer.Exit(code=1) from None

    if empty_samples is not None and empty_samples not in ("keep", "reject"):
        console.print(
            f"[red]Error: Invalid --empty-samples '{empty_samples}'. "
            f"Use 'keep' or 'reject'.[/red]"
        )
        raise typer.Exit(code=1) from None

    try:
        base = UnifracConfig.from_yaml(config_file) if config_file else UnifracConfig()
        config = base.with_overrides(
            threads=threads,
            output_format=output_format,
            precision=precision,
            empty_sample_policy=empty_samples,
            verify_formulations=True if verify else None,
        )
    except (ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Error: Invalid configuration: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from None

    logger.debug("Effective configuration: %s", config.model_dump())
    output = validate_output_format_extension(output, config.output_format, out)

    out.print("\n[bold blue]fastunifrac: unweighted UniFrac[/bold blue]\n")
    out.print(f"[bold]Tree:[/bold] {tree}")
    out.print(f"[bold]Table:[/bold] {input_table}")
    if verbose:
        out.print(f"[dim]Threads: {config.threads}, verify: {config.verify_formulations}[/dim]")

    try:
        with spinner_progress("Loading tree and sample table...", console, quiet):
            phylo = read_tree(tree)
            table = read_sample_table(input_table, config.presence_threshold)

        out.print(
            f"[bold]Leaves:[/bold] {phylo.n_leaves:,}   "
            f"[bold]Samples:[/bold] {table.n_samples:,}   "
            f"[bold]Taxa:[/bold] {table.n_taxa:,}"
        )

        with spinner_progress(
            f"Computing distances for {table.n_samples:,} samples...",
            console,
            quiet,
        ):
            result = UnifracCalculator(phylo, config).compute(table)

        write_distance_matrix(
            result.matrix,
            output,
            output_format=config.output_format,
            precision=config.precision,
        )

    except FastUnifracError as e:
        console.print(f"\n[red]Error: {escape(e.full_message)}[/red]")
        if verbose:
            console.print_exception()
        raise typer.Exit(code=1) from None
    except FileNotFoundError as e:
        console.print(f"\n[red]File not found: {e}[/red]")
        raise typer.Exit(code=1) from None
    except PermissionError as e:
        console.print(f"\n[red]Permission denied: {e}[/red]")
        console.print("[dim]Check file permissions and try again.[/dim]")
        raise typer.Exit(code=1) from None

    alignment = result.alignment
    if alignment.unknown_taxa:
        out.print(
            f"[yellow]Ignored {len(alignment.unknown_taxa):,} taxa not found in the tree[/yellow]"
        )
    if alignment.empty_samples:
        out.print(
            f"[yellow]{len(alignment.empty_samples):,} sample(s) have no taxa in the tree[/yellow]"
        )

    out.print(f"\n[bold green]Distance matrix written:[/bold green] {output}")
    out.print()
