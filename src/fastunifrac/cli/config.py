"""
Config command for managing YAML run configurations.

Provides subcommands:
- init: Write a configuration file populated with the defaults
- show: Print the effective configuration of a YAML file
"""

from __future__ import annotations

from pathlib import Path

import typer
import yaml
from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax

from fastunifrac.models.config import UnifracConfig

app = typer.Typer(
    name="config",
    help="Create and inspect YAML configuration files",
    no_args_is_help=True,
)

console = Console()


@app.command(name="init")
def init(
    output: Path = typer.Option(
        Path("fastunifrac.yaml"),
        "--output",
        "-o",
        help="Path of the configuration file to create",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        help="Overwrite an existing file",
    ),
) -> None:
    """
    Write the default configuration to a YAML file.

    Example:

        fastunifrac config init -o run.yaml
    """
    if output.exists() and not force:
        console.print(f"[red]Error: {output} already exists (use --force to overwrite)[/red]")
        raise typer.Exit(code=1) from None

    output.parent.mkdir(parents=True, exist_ok=True)
    UnifracConfig().to_yaml(output)
    console.print(f"[green]Wrote default configuration to {output}[/green]")


@app.command(name="show")
def show(
    config_file: Path = typer.Argument(
        ...,
        help="YAML configuration file",
        exists=True,
        dir_okay=False,
    ),
) -> None:
    """Print the configuration a YAML file resolves to, defaults included."""
    try:
        config = UnifracConfig.from_yaml(config_file)
    except (ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Error: Invalid configuration: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from None

    console.print(Syntax(config.to_yaml_str(), "yaml"))
