"""
I/O utilities for trees, sample tables and distance matrices.

Provides consistent handling of output formats (TSV/CSV/Parquet) across the
codebase.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal

import polars as pl

from fastunifrac.core.constants import (
    DEFAULT_OUTPUT_PRECISION,
    DEFAULT_PRESENCE_THRESHOLD,
    MAX_OUTPUT_PRECISION,
)
from fastunifrac.core.exceptions import InvalidThresholdError
from fastunifrac.core.matrix import DistanceMatrix
from fastunifrac.core.table import SampleTable
from fastunifrac.core.tree import PhyloTree

logger = logging.getLogger(__name__)

OutputFormat = Literal["tsv", "csv", "parquet"]

_SEPARATORS = {"tsv": "\t", "csv": ","}


def read_tree(path: Path) -> PhyloTree:
    """Load a Newick tree file."""
    return PhyloTree.from_file(path)


def read_sample_table(
    path: Path,
    presence_threshold: float = DEFAULT_PRESENCE_THRESHOLD,
) -> SampleTable:
    """Load a tab-delimited (or ``.csv``) taxon-by-sample table."""
    return SampleTable.from_file(path, presence_threshold=presence_threshold)


def write_dataframe(
    df: pl.DataFrame,
    path: Path,
    output_format: OutputFormat = "tsv",
    precision: int | None = None,
) -> None:
    """
    Write DataFrame to file in specified format.

    For Parquet output, uses zstd compression and stores full-precision
    floats; ``precision`` applies to the delimited formats only.

    Args:
        df: Polars DataFrame to write.
        path: Output file path.
        output_format: Output format - 'tsv', 'csv' or 'parquet'.
        precision: Fixed number of decimals for float columns.

    Example:
        >>> df = pl.DataFrame({"a": [1.0, 2.5]})
        >>> write_dataframe(df, Path("output.tsv"), "tsv", precision=3)
    """
    if output_format == "parquet":
        df.write_parquet(path, compression="zstd")
    else:
        df.write_csv(
            path,
            separator=_SEPARATORS[output_format],
            float_precision=precision,
        )


def read_dataframe(path: Path) -> pl.DataFrame:
    """
    Read DataFrame from file, auto-detecting format from extension.

    Supports: .csv, .tsv, .txt, .parquet, .csv.gz, .tsv.gz

    Raises:
        ValueError: If file extension is not recognized.
    """
    suffix = path.suffix.lower()
    name = path.name.lower()

    if suffix == ".parquet":
        return pl.read_parquet(path)
    if suffix == ".csv" or name.endswith(".csv.gz"):
        return pl.read_csv(path, infer_schema_length=0)
    if suffix in (".tsv", ".txt") or name.endswith(".tsv.gz"):
        return pl.read_csv(path, separator="\t", infer_schema_length=0)
    msg = f"Unrecognized file format: {path}"
    raise ValueError(msg)


def write_distance_matrix(
    matrix: DistanceMatrix,
    path: Path,
    output_format: OutputFormat = "tsv",
    precision: int = DEFAULT_OUTPUT_PRECISION,
) -> None:
    """
    Write a distance matrix with a ``Sample`` header cell.

    The header cell gains trailing ``_`` when a sample is itself named
    ``Sample``; see ``DistanceMatrix.index_column``.

    Layout (tab-separated for ``tsv``)::

        Sample  S1        S2        S3
        S1      0.000000  0.381000  1.000000
        ...

    Raises:
        InvalidThresholdError: If ``precision`` is outside [0, 17].
    """
    if not 0 <= precision <= MAX_OUTPUT_PRECISION:
        raise InvalidThresholdError("precision", precision, 0, MAX_OUTPUT_PRECISION)

    path.parent.mkdir(parents=True, exist_ok=True)
    write_dataframe(matrix.to_polars(), path, output_format, precision=precision)
    logger.info(
        "Wrote %d x %d distance matrix to %s (%s)",
        matrix.n_samples,
        matrix.n_samples,
        path,
        output_format,
    )


def read_distance_matrix(path: Path) -> DistanceMatrix:
    """
    Read a matrix written by ``write_distance_matrix``.

    The first column holds sample names; its header cell is not checked.

    Raises:
        ValueError: If the format is unrecognized or the layout is not a
            valid distance matrix.
    """
    df = read_dataframe(path)
    if df.width < 1:
        msg = f"Distance matrix file has no columns: {path}"
        raise ValueError(msg)

    names = [str(n) for n in df.get_column(df.columns[0]).to_list()]
    columns = df.columns[1:]
    if columns != names:
        msg = f"Row and column sample names differ in {path}"
        raise ValueError(msg)

    values = df.select([pl.col(c).cast(pl.Float64) for c in columns]).to_numpy()
    return DistanceMatrix(names, values.reshape(len(names), len(names)))

