"""
Shared CLI utilities for fastunifrac commands.

Provides common functionality used across CLI modules.
"""

from __future__ import annotations

import logging
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.progress import (
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)

_DELIMITED_SUFFIXES = (".tsv", ".csv", ".txt")


@contextmanager
def spinner_progress(
    description: str,
    console: Console | None = None,
    quiet: bool = False,
) -> Generator[Progress, None, None]:
    """Context manager for spinner-style progress display.

    The spinner is suppressed when quiet mode is enabled.

    Args:
        description: Task description to display.
        console: Rich Console instance. If None and not quiet, creates one.
        quiet: If True, suppress the progress display entirely.

    Yields:
        Progress instance (even when quiet, for API consistency).
    """
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console if not quiet else None,
        disable=quiet,
    ) as progress:
        progress.add_task(description=description, total=None)
        yield progress


def configure_logging(
    verbose: bool = False,
    quiet: bool = False,
    console: Console | None = None,
) -> None:
    """Route library logging through a Rich handler.

    ``--verbose`` shows DEBUG records, ``--quiet`` only warnings and errors;
    the default level is INFO. Calling it again replaces the handler.
    """
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=verbose,
        rich_tracebacks=verbose,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))

    package_logger = logging.getLogger("fastunifrac")
    for existing in list(package_logger.handlers):
        if isinstance(existing, RichHandler):
            package_logger.removeHandler(existing)
    package_logger.addHandler(handler)
    package_logger.setLevel(level)


def validate_output_format_extension(
    output: Path,
    output_format: str,
    console: Console,
) -> Path:
    """
    Validate that output file extension matches the specified format.

    If there's a mismatch, warns the user and returns the corrected path.
    Paths without a recognised table extension are left untouched.

    Args:
        output: Original output path
        output_format: Specified format ('tsv', 'csv' or 'parquet')
        console: Console for printing warnings

    Returns:
        Output path with an extension consistent with the format
    """
    actual_ext = output.suffix.lower()

    if output_format == "parquet" and actual_ext in _DELIMITED_SUFFIXES:
        corrected = output.with_suffix(".parquet")
    elif output_format in ("tsv", "csv") and actual_ext == ".parquet":
        corrected = output.with_suffix(f".{output_format}")
    else:
        return output

    console.print(
        f"[yellow]Warning: Output extension '{actual_ext}' doesn't match "
        f"format '{output_format}'[/yellow]\n"
        f"  Correcting to: {corrected.name}"
    )
    return corrected


class QuietConsole:
    """Console wrapper that suppresses output in quiet mode.

    This class wraps a Rich Console instance and conditionally suppresses
    print output when quiet mode is enabled. All other console methods
    are delegated to the wrapped instance.

    Example:
        >>> console = Console()
        >>> qc = QuietConsole(console, quiet=True)
        >>> qc.print("This won't be shown")  # Suppressed
    """

    def __init__(self, console: Console, quiet: bool = False):
        self._console = console
        self._quiet = quiet

    @property
    def console(self) -> Console:
        """The wrapped Console, for output that must appear even when quiet."""
        return self._console

    def print(self, *args: Any, **kwargs: Any) -> None:
        if not self._quiet:
            self._console.print(*args, **kwargs)

    def __getattr__(self, name: str) -> Any:
        return getattr(self._console, name)
