"""
All-pairs unweighted UniFrac distance matrix.

Every sample is projected onto the tree's edges exactly once, then each
unordered pair ``i < j`` is scored with the pairwise engine and mirrored.
The pairwise loop can be spread over a thread pool by row; each row's
worker owns the cells ``(i, j)`` with ``j > i`` so no cell is computed twice.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass

import numpy as np
import polars as pl

from fastunifrac.core.constants import MATRIX_INDEX_COLUMN
from fastunifrac.core.distance import unifrac_distance
from fastunifrac.core.exceptions import (
    EmptySampleError,
    MismatchedDimensionsError,
    PresenceMismatchError,
)
from fastunifrac.core.presence import PresenceMatrix, project_sample_from_matrix, project_samples
from fastunifrac.core.table import SampleTable, TableAlignment
from fastunifrac.core.tree import PhyloTree
from fastunifrac.models.config import UnifracConfig

logger = logging.getLogger(__name__)


class DistanceMatrix:
    """
    Symmetric sample-by-sample distance matrix with a zero diagonal.

    Provides O(1) lookup by sample name or index.

    Example:
        >>> dm = DistanceMatrix(["A", "B"], np.array([[0.0, 0.4], [0.4, 0.0]]))
        >>> dm["A", "B"]
        0.4
    """

    __slots__ = ("_index", "_names", "_values")

    def __init__(self, sample_names: Sequence[str], values: np.ndarray) -> None:
        """
        Wrap a square distance array.

        Args:
            sample_names: One name per row/column, unique.
            values: N x N float array.

        Raises:
            ValueError: If names repeat or the array is not a symmetric
                N x N matrix with a zero diagonal.
        """
        names = tuple(sample_names)
        if len(set(names)) != len(names):
            msg = "Distance matrix sample names must be unique"
            raise ValueError(msg)

        arr = np.array(values, dtype=np.float64)
        n = len(names)
        if arr.shape != (n, n):
            msg = f"Distance matrix must be {n}x{n} for {n} samples, got shape {arr.shape}"
            raise ValueError(msg)
        if not np.array_equal(arr, arr.T):
            msg = "Distance matrix must be symmetric"
            raise ValueError(msg)
        if np.any(np.diag(arr) != 0.0):
            msg = "Distance matrix diagonal must be zero"
            raise ValueError(msg)

        arr.flags.writeable = False
        self._values = arr
        self._names = names
        self._index = {name: i for i, name in enumerate(names)}

    @property
    def sample_names(self) -> tuple[str, ...]:
        return self._names

    @property
    def values(self) -> np.ndarray:
        """Read-only N x N array."""
        return self._values

    @property
    def n_samples(self) -> int:
        return len(self._names)

    def __len__(self) -> int:
        return len(self._names)

    def index_of(self, sample: str) -> int:
        """Row index of ``sample``; KeyError if unknown."""
        return self._index[sample]

    def __getitem__(self, key: tuple[str | int, str | int]) -> float:
        a, b = key
        i = a if isinstance(a, (int, np.integer)) else self._index[a]
        j = b if isinstance(b, (int, np.integer)) else self._index[b]
        return float(self._values[i, j])

    def condensed(self) -> np.ndarray:
        """Upper triangle above the diagonal, row-major (SciPy ``pdist`` order)."""
        from scipy.spatial.distance import squareform

        return squareform(self._values, checks=False)

    @property
    def index_column(self) -> str:
        """Header of the name column; ``Sample`` with ``_`` appended while it names a sample."""
        column = MATRIX_INDEX_COLUMN
        while column in self._index:
            column += "_"
        return column

    def to_polars(self) -> pl.DataFrame:
        """DataFrame with a leading ``index_column`` followed by one column per sample."""
        index_column = self.index_column
        data: dict[str, list] = {index_column: list(self._names)}
        for j, name in enumerate(self._names):
            data[name] = self._values[:, j].tolist()
        schema = {index_column: pl.Utf8, **dict.fromkeys(self._names, pl.Float64)}
        return pl.DataFrame(data, schema=schema)

    def memory_usage_bytes(self) -> int:
        return self._values.nbytes

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DistanceMatrix):
            return NotImplemented
        return self._names == other._names and np.array_equal(self._values, other._values)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"DistanceMatrix(n_samples={self.n_samples})"


@dataclass(frozen=True)
class DistanceResult:
    """Distance matrix together with the table/tree alignment it was computed from."""

    matrix: DistanceMatrix
    alignment: TableAlignment


class UnifracCalculator:
    """
    Computes unweighted UniFrac matrices against a fixed tree.

    The tree's branch-length vector is prepared once and reused for every
    table passed to ``compute``.
    """

    def __init__(self, tree: PhyloTree, config: UnifracConfig | None = None) -> None:
        self.tree = tree
        self.config = config or UnifracConfig()
        self._branch_lengths = np.ascontiguousarray(tree.branch_lengths, dtype=np.float64)
        self._incidence: PresenceMatrix | None = None

    @property
    def incidence(self) -> PresenceMatrix:
        """Edge x leaf incidence matrix, built on first use."""
        if self._incidence is None:
            self._incidence = PresenceMatrix.from_tree(self.tree)
        return self._incidence

    def compute(self, table: SampleTable) -> DistanceResult:
        """
        Align ``table`` to the tree and compute the full distance matrix.

        Raises:
            EmptySampleError: If the empty-sample policy is ``"reject"``
                and some sample has no taxa in the tree.
            PresenceMismatchError: If verification is enabled and the two
                presence projections disagree.
            FormulationMismatchError: If verification is enabled and the two
                shared-length formulations disagree.
        """
        alignment = table.align_to_tree(self.tree)

        if alignment.empty_samples and self.config.empty_sample_policy == "reject":
            raise EmptySampleError(list(alignment.empty_samples))

        presence = self.project(alignment.leaf_masks, alignment.sample_names)
        values = self.pairwise(presence)

        logger.info(
            "Computed %d x %d UniFrac matrix (%d pairs)",
            len(values),
            len(values),
            len(values) * (len(values) - 1) // 2,
        )
        matrix = DistanceMatrix(alignment.sample_names, values)
        return DistanceResult(matrix=matrix, alignment=alignment)

    def project(
        self,
        leaf_masks: np.ndarray,
        sample_names: Sequence[str] | None = None,
    ) -> np.ndarray:
        """
        Edge presence vectors (N x E) for a block of leaf masks.

        With verification enabled, each vector is checked against the
        row-reduction of the incidence matrix.
        """
        presence = project_samples(self.tree, leaf_masks)
        if self.config.verify_formulations:
            for i, mask in enumerate(leaf_masks):
                expected = project_sample_from_matrix(self.incidence, mask)
                if not np.array_equal(presence[i], expected):
                    name = sample_names[i] if sample_names is not None else str(i)
                    n_diff = int(np.count_nonzero(presence[i] != expected))
                    raise PresenceMismatchError(name, n_diff)
            logger.debug("Presence vectors verified against the incidence matrix")
        return presence

    def pairwise(self, presence: np.ndarray) -> np.ndarray:
        """
        Symmetric N x N distances from an N x E presence block.

        Raises:
            MismatchedDimensionsError: If the block width is not the edge count.
        """
        presence = np.asarray(presence, dtype=bool)
        if presence.ndim != 2 or presence.shape[1] != self.tree.n_edges:
            width = presence.shape[-1] if presence.ndim else 0
            raise MismatchedDimensionsError("presence block width", self.tree.n_edges, width)

        n = presence.shape[0]
        values = np.zeros((n, n), dtype=np.float64)
        threads = self.config.threads

        if threads <= 1 or n < 3:
            for i in range(n - 1):
                values[i, i + 1 :] = self._row(presence, i)
        else:
            logger.debug("Scoring %d rows with %d worker threads", n - 1, threads)
            with ThreadPoolExecutor(max_workers=threads) as executor:
                future_to_row = {
                    executor.submit(self._row, presence, i): i for i in range(n - 1)
                }
                for future in as_completed(future_to_row):
                    i = future_to_row[future]
                    values[i, i + 1 :] = future.result()

        upper = np.triu_indices(n, k=1)
        values[(upper[1], upper[0])] = values[upper]
        return values

    def _row(self, presence: np.ndarray, i: int) -> np.ndarray:
        """Distances from sample ``i`` to every sample ``j > i``."""
        n = presence.shape[0]
        row = np.empty(n - i - 1, dtype=np.float64)
        verify = self.config.verify_formulations
        tolerance = self.config.formulation_tolerance
        for k, j in enumerate(range(i + 1, n)):
            result = unifrac_distance(
                presence[i],
                presence[j],
                self._branch_lengths,
                verify=verify,
                tolerance=tolerance,
            )
            row[k] = result.distance
            logger.debug(
                "pair (%d, %d): shared=%.6g union=%.6g D=%.6f",
                i,
                j,
                result.shared,
                result.union,
                result.distance,
            )
        return row


def compute_unifrac(
    tree: PhyloTree,
    table: SampleTable,
    config: UnifracConfig | None = None,
) -> DistanceResult:
    """
    Compute the unweighted UniFrac distance matrix for ``table`` on ``tree``.

    Args:
        tree: Rooted tree whose leaves are the taxa.
        table: Presence table of taxa by samples.
        config: Run configuration; defaults to ``UnifracConfig()``.

    Returns:
        DistanceResult with the matrix and alignment diagnostics.
    """
    return UnifracCalculator(tree, config).compute(table)
