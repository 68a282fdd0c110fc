"""
Sample-by-taxon presence table and its alignment to a tree's leaf order.

Tables are read with Polars from the tab-delimited layout produced by
common feature-table exporters::

    #OTU ID   SampleA   SampleB   SampleC
    T1        10        0         5
    T2        0         25        0

The first header cell is ignored; the remaining header cells are sample
names. Every further row is a taxon followed by one value per sample.
Only presence matters: a value counts as present when it is strictly
greater than the presence threshold, and values that do not parse as
numbers count as absent.
"""

from __future__ import annotations

import gzip
import logging
from collections import Counter
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import polars as pl

from fastunifrac.core.constants import DEFAULT_PRESENCE_THRESHOLD
from fastunifrac.core.exceptions import (
    DuplicateSampleError,
    DuplicateTaxonError,
    EmptySampleTableError,
    MalformedSampleTableError,
    UnknownTaxaWarning,
)
from fastunifrac.core.tree import PhyloTree

logger = logging.getLogger(__name__)

_IN_MEMORY = "<in-memory table>"


@dataclass(frozen=True, eq=False)
class TableAlignment:
    """
    A sample table projected onto a tree's leaf order.

    Attributes:
        sample_names: Sample names in table order.
        leaf_masks: ``N x L`` boolean array; row ``i`` marks the leaves
            present in sample ``i``.
        unknown_taxa: Table taxa that are not tree leaves (dropped).
        missing_leaves: Tree leaves with no table row (absent everywhere).
        empty_samples: Samples with no present leaf.
    """

    sample_names: tuple[str, ...]
    leaf_masks: np.ndarray
    unknown_taxa: tuple[str, ...]
    missing_leaves: tuple[str, ...]
    empty_samples: tuple[str, ...]
    n_table_taxa: int

    @property
    def n_matched(self) -> int:
        """Number of table taxa found among the tree leaves."""
        return self.n_table_taxa - len(self.unknown_taxa)

    @property
    def warning(self) -> UnknownTaxaWarning | None:
        """Diagnostic for dropped taxa, or None when every taxon matched."""
        if not self.unknown_taxa:
            return None
        return UnknownTaxaWarning(list(self.unknown_taxa), self.n_table_taxa)


class SampleTable:
    """
    Immutable presence/absence table of taxa (rows) by samples (columns).

    Example:
        >>> table = SampleTable.from_mapping({"S1": {"A": 3, "B": 0}, "S2": {"B": 1}})
        >>> table.present_taxa("S1")
        {'A'}
    """

    __slots__ = ("_presence", "_sample_names", "_taxa", "_taxon_index")

    def __init__(
        self,
        sample_names: Sequence[str],
        taxa: Sequence[str],
        presence: np.ndarray,
        source: str = _IN_MEMORY,
    ) -> None:
        """
        Initialize from names and an ``n_taxa x n_samples`` presence array.

        Raises:
            EmptySampleTableError: If there are no samples.
            DuplicateSampleError: If sample names repeat.
            DuplicateTaxonError: If taxon names repeat.
            MalformedSampleTableError: If the array shape disagrees with the names.
        """
        if not sample_names:
            raise EmptySampleTableError(source)

        sample_dups = [s for s, n in Counter(sample_names).items() if n > 1]
        if sample_dups:
            raise DuplicateSampleError(sample_dups)
        taxon_dups = [t for t, n in Counter(taxa).items() if n > 1]
        if taxon_dups:
            raise DuplicateTaxonError(taxon_dups)

        if len(taxa) == 0:
            matrix = np.zeros((0, len(sample_names)), dtype=bool)
        else:
            matrix = np.asarray(presence, dtype=bool)
        if matrix.shape != (len(taxa), len(sample_names)):
            raise MalformedSampleTableError(
                source,
                f"presence array has shape {matrix.shape}, expected "
                f"({len(taxa)}, {len(sample_names)})",
            )

        matrix = matrix.copy()
        matrix.flags.writeable = False
        self._presence = matrix
        self._sample_names: tuple[str, ...] = tuple(sample_names)
        self._taxa: tuple[str, ...] = tuple(taxa)
        self._taxon_index = {taxon: i for i, taxon in enumerate(self._taxa)}

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def from_abundances(
        cls,
        sample_names: Sequence[str],
        taxa: Sequence[str],
        values: np.ndarray,
        presence_threshold: float = DEFAULT_PRESENCE_THRESHOLD,
        source: str = _IN_MEMORY,
    ) -> SampleTable:
        """Build from an ``n_taxa x n_samples`` abundance array."""
        arr = np.asarray(values, dtype=np.float64)
        if len(taxa) == 0:
            arr = np.zeros((0, len(sample_names)))
        with np.errstate(invalid="ignore"):
            presence = arr > presence_threshold
        return cls(sample_names, taxa, presence, source=source)

    @classmethod
    def from_mapping(
        cls,
        samples: Mapping[str, Mapping[str, float]],
        presence_threshold: float = DEFAULT_PRESENCE_THRESHOLD,
    ) -> SampleTable:
        """
        Build from ``{sample: {taxon: abundance}}``.

        Taxa are ordered by first appearance; a taxon missing from a
        sample's mapping is absent in that sample.
        """
        sample_names = list(samples)
        taxa: dict[str, int] = {}
        for counts in samples.values():
            for taxon in counts:
                taxa.setdefault(taxon, len(taxa))

        values = np.zeros((len(taxa), len(sample_names)), dtype=np.float64)
        for j, counts in enumerate(samples.values()):
            for taxon, value in counts.items():
                values[taxa[taxon], j] = float(value)

        return cls.from_abundances(sample_names, list(taxa), values, presence_threshold)

    @classmethod
    def from_dataframe(
        cls,
        df: pl.DataFrame,
        presence_threshold: float = DEFAULT_PRESENCE_THRESHOLD,
        source: str = _IN_MEMORY,
    ) -> SampleTable:
        """
        Build from a DataFrame whose first column holds taxon names.

        Remaining columns are samples. Values that cannot be cast to a
        float are treated as absent.
        """
        if df.width < 2:
            raise EmptySampleTableError(source)

        taxon_col = df.columns[0]
        sample_cols = df.columns[1:]
        df = df.filter(pl.col(taxon_col).is_not_null())

        values = df.select(
            [
                _to_float_expr(pl.col(c), df.schema[c]).fill_null(0.0).alias(c)
                for c in sample_cols
            ]
        ).to_numpy()
        taxa = [str(t) for t in df.get_column(taxon_col).to_list()]
        return cls.from_abundances(sample_cols, taxa, values, presence_threshold, source=source)

    @classmethod
    def from_file(
        cls,
        path: Path,
        presence_threshold: float = DEFAULT_PRESENCE_THRESHOLD,
    ) -> SampleTable:
        """
        Read a tab-delimited (or ``.csv`` comma-delimited) sample table.

        Compressed ``.gz`` files are supported.

        Raises:
            FileNotFoundError: If the file does not exist.
            EmptySampleTableError: If the header names no samples.
            DuplicateSampleError: If sample names repeat in the header.
            MalformedSampleTableError: If the file is not UTF-8 text or a row
                has more cells than the header.
        """
        if not path.exists():
            msg = f"Sample table not found: {path}"
            raise FileNotFoundError(msg)

        name = path.name.lower()
        separator = "," if name.endswith((".csv", ".csv.gz")) else "\t"

        try:
            header, has_rows = _read_header(path, separator)
        except UnicodeDecodeError as e:
            raise MalformedSampleTableError(str(path), f"not valid UTF-8 text ({e.reason})") from e
        sample_names = header[1:]
        if not sample_names:
            raise EmptySampleTableError(str(path))
        sample_dups = [s for s, n in Counter(sample_names).items() if n > 1]
        if sample_dups:
            raise DuplicateSampleError(sample_dups)

        if not has_rows:
            table = cls(sample_names, [], np.zeros((0, len(sample_names))), source=str(path))
        else:
            try:
                raw = pl.read_csv(
                    path,
                    separator=separator,
                    has_header=False,
                    skip_rows=1,
                    infer_schema_length=0,
                    quote_char=None,
                )
            except (
                pl.exceptions.ComputeError,
                pl.exceptions.NoDataError,
                UnicodeDecodeError,
            ) as e:
                raise MalformedSampleTableError(str(path), str(e)) from e

            if raw.width != len(header):
                raise MalformedSampleTableError(
                    str(path),
                    f"header has {len(header)} cells but rows have {raw.width}",
                )
            raw.columns = ["__taxon__", *(f"__s{i}__" for i in range(len(sample_names)))]
            table = cls.from_dataframe(raw, presence_threshold, source=str(path))
            table = cls(sample_names, table.taxa, table.presence, source=str(path))

        logger.info(
            "Loaded sample table from %s: %d samples, %d taxa",
            path,
            table.n_samples,
            table.n_taxa,
        )
        return table

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def sample_names(self) -> tuple[str, ...]:
        return self._sample_names

    @property
    def taxa(self) -> tuple[str, ...]:
        return self._taxa

    @property
    def presence(self) -> np.ndarray:
        """Read-only ``n_taxa x n_samples`` boolean array."""
        return self._presence

    @property
    def n_samples(self) -> int:
        return len(self._sample_names)

    @property
    def n_taxa(self) -> int:
        return len(self._taxa)

    def present_taxa(self, sample: str) -> set[str]:
        """Taxa present in ``sample``."""
        j = self._sample_names.index(sample)
        return {self._taxa[i] for i in np.flatnonzero(self._presence[:, j])}

    def align_to_tree(self, tree: PhyloTree) -> TableAlignment:
        """
        Express every sample as a boolean mask over the tree's leaf order.

        Taxa that are not tree leaves are dropped and reported through the
        log and ``TableAlignment.unknown_taxa``. Tree leaves without a table
        row are absent in every sample.
        """
        leaf_index = tree.leaf_index
        positions = np.fromiter(
            (leaf_index.get(taxon, -1) for taxon in self._taxa),
            dtype=np.int64,
            count=self.n_taxa,
        )
        known = positions >= 0

        masks = np.zeros((self.n_samples, tree.n_leaves), dtype=bool)
        masks[:, positions[known]] = self._presence[known].T

        unknown = tuple(t for t, ok in zip(self._taxa, known.tolist()) if not ok)
        missing = tuple(leaf for leaf in tree.leaf_names if leaf not in self._taxon_index)
        empty = tuple(
            name for name, row in zip(self._sample_names, masks) if not row.any()
        )

        alignment = TableAlignment(
            sample_names=self._sample_names,
            leaf_masks=masks,
            unknown_taxa=unknown,
            missing_leaves=missing,
            empty_samples=empty,
            n_table_taxa=self.n_taxa,
        )

        warning = alignment.warning
        if warning is not None:
            logger.warning("%s", warning.message)
            logger.debug("Unknown taxa: %s", ", ".join(unknown))
        if missing:
            logger.info(
                "%d of %d tree leaves have no table row and are treated as absent",
                len(missing),
                tree.n_leaves,
            )
        if empty:
            logger.warning(
                "%d sample(s) have no taxa in the tree: %s",
                len(empty),
                ", ".join(empty[:5]),
            )
        return alignment

    def __repr__(self) -> str:
        return f"SampleTable(n_samples={self.n_samples}, n_taxa={self.n_taxa})"


def _to_float_expr(expr: pl.Expr, dtype: pl.DataType) -> pl.Expr:
    if dtype == pl.Utf8:
        expr = expr.str.strip_chars()
    return expr.cast(pl.Float64, strict=False)


def _read_header(path: Path, separator: str) -> tuple[list[str], bool]:
    """Split the header line and report whether any non-blank line follows."""
    opener = gzip.open if path.name.lower().endswith(".gz") else open
    with opener(path, "rt", encoding="utf-8") as f:
        header = f.readline().rstrip("\r\n")
        has_rows = any(line.strip() for line in f)
    if not header:
        return [], has_rows
    return header.split(separator), has_rows
