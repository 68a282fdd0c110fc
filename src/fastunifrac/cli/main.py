"""
Main CLI entry point for fastunifrac.

Provides subcommands:
- compute: Unweighted UniFrac distance matrix from a tree and a sample table
- validate: Check that a sample table lines up with a tree
- config: Create and inspect YAML configuration files
"""

from __future__ import annotations

import typer
from rich import print as rprint

from fastunifrac import __version__

app = typer.Typer(
    name="fastunifrac",
    help="Unweighted UniFrac distances between microbial communities",
    add_completion=False,
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        rprint(f"fastunifrac version {__version__}")
        raise typer.Exit


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """
    fastunifrac: phylogenetic beta diversity with unweighted UniFrac.

    Given a rooted tree and a table of which taxa occur in which samples,
    computes the fraction of branch length not shared between every pair
    of samples.
    """


# Import subcommands
from fastunifrac.cli import compute, config, validate

# Register subcommands
app.command(name="compute")(compute.compute)
app.command(name="validate")(validate.validate)
app.add_typer(config.app, name="config")


if __name__ == "__main__":
    app()
