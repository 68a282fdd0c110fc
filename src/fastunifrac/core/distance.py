"""
Unweighted UniFrac distance between two edge presence vectors.

For presence vectors ``P_A``, ``P_B`` and branch lengths ``b``::

    shared = sum_e b[e] * (P_A[e] and P_B[e])
    union  = sum_e b[e] * (P_A[e] or  P_B[e])
    D      = 1 - shared / union        (0 when union == 0)

This is the normalized form of Lozupone & Knight (2005) as used by Fast
UniFrac: the fraction of branch length spanned by either sample that is
not spanned by both.

``shared`` can be computed as a masked sum (the production path) or as the
matrix product ``P_A . diag(b) . P_B``. The two are kept side by side so
the second can verify the first.
"""

from __future__ import annotations

from typing import NamedTuple

import numpy as np

from fastunifrac.core.constants import DEFAULT_FORMULATION_TOLERANCE, EMPTY_UNION_DISTANCE
from fastunifrac.core.exceptions import FormulationMismatchError, MismatchedDimensionsError


class PairwiseResult(NamedTuple):
    """Distance and the branch-length sums it was derived from."""

    distance: float
    shared: float
    union: float

    @property
    def unique(self) -> float:
        """Branch length covered by exactly one of the two samples."""
        return self.union - self.shared


def _validate(
    p_a: np.ndarray,
    p_b: np.ndarray,
    branch_lengths: np.ndarray,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    a = np.asarray(p_a, dtype=bool)
    b = np.asarray(p_b, dtype=bool)
    lengths = np.asarray(branch_lengths, dtype=np.float64)
    n_edges = lengths.shape[0]
    if a.shape != (n_edges,):
        raise MismatchedDimensionsError("presence vector A", n_edges, a.size)
    if b.shape != (n_edges,):
        raise MismatchedDimensionsError("presence vector B", n_edges, b.size)
    return a, b, lengths


def ascending_sum(values: np.ndarray) -> float:
    """Sum of ``values`` accumulated strictly left to right."""
    if values.size == 0:
        return 0.0
    return float(np.cumsum(values)[-1])


def shared_branch_length(
    p_a: np.ndarray,
    p_b: np.ndarray,
    branch_lengths: np.ndarray,
) -> float:
    """Branch length under both samples, summed in ascending edge order."""
    a, b, lengths = _validate(p_a, p_b, branch_lengths)
    return ascending_sum(lengths[a & b])


def union_branch_length(
    p_a: np.ndarray,
    p_b: np.ndarray,
    branch_lengths: np.ndarray,
) -> float:
    """Branch length under either sample, summed in ascending edge order."""
    a, b, lengths = _validate(p_a, p_b, branch_lengths)
    return ascending_sum(lengths[a | b])


def unique_branch_length(
    p_a: np.ndarray,
    p_b: np.ndarray,
    branch_lengths: np.ndarray,
) -> float:
    """Branch length under exactly one of the two samples."""
    a, b, lengths = _validate(p_a, p_b, branch_lengths)
    return ascending_sum(lengths[a ^ b])


def shared_branch_length_matrix(
    p_a: np.ndarray,
    p_b: np.ndarray,
    branch_lengths: np.ndarray,
) -> float:
    """
    Shared branch length as ``P_A . diag(b) . P_B``.

    ``diag(b) . P_B`` is formed as the elementwise product ``b * P_B`` so the
    E x E diagonal matrix is never materialised.
    """
    a, b, lengths = _validate(p_a, p_b, branch_lengths)
    return float(a.astype(np.float64) @ (lengths * b.astype(np.float64)))


def formulations_agree(
    direct: float,
    product: float,
    tolerance: float = DEFAULT_FORMULATION_TOLERANCE,
) -> bool:
    """Whether two shared-length values agree within a scale-aware tolerance."""
    return abs(direct - product) <= tolerance * max(1.0, abs(direct))


def unifrac_distance(
    p_a: np.ndarray,
    p_b: np.ndarray,
    branch_lengths: np.ndarray,
    *,
    verify: bool = False,
    tolerance: float = DEFAULT_FORMULATION_TOLERANCE,
) -> PairwiseResult:
    """
    Unweighted UniFrac distance between two samples.

    Args:
        p_a: Length-E edge presence vector of the first sample.
        p_b: Length-E edge presence vector of the second sample.
        branch_lengths: Length-E branch lengths, 0 for the root edge.
        verify: Also compute the matrix-product form of ``shared`` and
            raise if it disagrees with the direct sum.
        tolerance: Relative tolerance for ``verify`` (absolute below 1.0).

    Returns:
        PairwiseResult with the distance in [0, 1] and the shared and union
        branch lengths. When neither sample covers any branch length the
        distance is 0.

    Raises:
        MismatchedDimensionsError: If the vectors differ in length.
        FormulationMismatchError: If ``verify`` is set and the two
            formulations disagree.
    """
    a, b, lengths = _validate(p_a, p_b, branch_lengths)
    shared = ascending_sum(lengths[a & b])
    union = ascending_sum(lengths[a | b])

    if verify:
        product = shared_branch_length_matrix(a, b, lengths)
        if not formulations_agree(shared, product, tolerance):
            raise FormulationMismatchError(shared, product, tolerance)

    if union > 0.0:
        # Rounding can push shared past union by an ulp
        distance = min(max(1.0 - shared / union, 0.0), 1.0)
    else:
        distance = EMPTY_UNION_DISTANCE

    return PairwiseResult(distance=distance, shared=shared, union=union)
