"""
Edge-by-leaf incidence structures and per-sample edge presence.

The incidence matrix ``B`` has one row per edge and one column per leaf,
with ``B[e, l]`` set when leaf ``l`` lies below edge ``e``. Rows are kept
as packed bitsets (``numpy.packbits`` layout, big-endian bit order), so a
tree with E edges and L leaves needs E * ceil(L / 8) bytes and
"is leaf l under edge e" is a single byte lookup.

A sample's presence vector ``P`` marks every edge with at least one of the
sample's taxa below it. The hot path computes it by propagating presence
bottom-up through the tree without touching ``B``; the row-reduction over
``B`` is kept as an independent verification path.
"""

from __future__ import annotations

import numpy as np

from fastunifrac.core.exceptions import MismatchedDimensionsError
from fastunifrac.core.tree import PhyloTree


def _bit_mask(leaf: int) -> tuple[int, np.uint8]:
    return leaf >> 3, np.uint8(0x80 >> (leaf & 7))


class PresenceMatrix:
    """
    Packed edge x leaf incidence matrix ``B`` with its branch-length vector ``b``.

    Row order is the tree's edge order (node id) and column order is the
    tree's leaf order. ``b[root]`` is 0, so the root row (all ones) never
    contributes branch length.

    Example:
        >>> tree = PhyloTree.from_newick("((A:1,B:2):0.5,C:3);")
        >>> matrix = PresenceMatrix.from_tree(tree)
        >>> matrix.is_under(1, tree.leaf_index["A"])
        True
    """

    __slots__ = ("_branch_lengths", "_leaf_counts", "_n_leaves", "_packed")

    def __init__(
        self,
        packed: np.ndarray,
        branch_lengths: np.ndarray,
        n_leaves: int,
    ) -> None:
        """
        Wrap precomputed packed rows.

        Args:
            packed: ``E x ceil(L / 8)`` uint8 array of packed rows.
            branch_lengths: Length-E edge lengths.
            n_leaves: Number of leaf columns L.

        Raises:
            MismatchedDimensionsError: If the arrays disagree on E or L.
        """
        n_bytes = (n_leaves + 7) // 8
        if packed.ndim != 2 or packed.shape[1] != n_bytes:
            width = packed.shape[1] if packed.ndim == 2 else packed.size
            raise MismatchedDimensionsError("packed row width (bytes)", n_bytes, width)
        if len(branch_lengths) != packed.shape[0]:
            raise MismatchedDimensionsError(
                "branch length vector", packed.shape[0], len(branch_lengths)
            )

        self._packed = packed
        self._packed.flags.writeable = False
        self._branch_lengths = np.asarray(branch_lengths, dtype=np.float64)
        self._n_leaves = n_leaves
        self._leaf_counts: np.ndarray | None = None

    @classmethod
    def from_tree(cls, tree: PhyloTree) -> PresenceMatrix:
        """
        Build ``B`` and ``b`` in a single post-order pass.

        Each leaf edge starts with its own bit; every other edge is the
        bitwise OR of its child edges.
        """
        n_edges = tree.n_edges
        n_leaves = tree.n_leaves
        packed = np.zeros((n_edges, (n_leaves + 7) // 8), dtype=np.uint8)

        for pos, node in enumerate(tree.leaf_nodes.tolist()):
            byte, bit = _bit_mask(pos)
            packed[node, byte] |= bit

        parent = tree.parent
        for node in tree.postorder().tolist():
            par = int(parent[node])
            if par >= 0:
                packed[par] |= packed[node]

        matrix = cls(packed, tree.branch_lengths.copy(), n_leaves)

        root_count = int(matrix.leaf_counts[tree.root])
        if root_count != n_leaves:
            raise MismatchedDimensionsError("leaves under the root edge", n_leaves, root_count)
        return matrix

    @property
    def shape(self) -> tuple[int, int]:
        """``(E, L)``."""
        return (self._packed.shape[0], self._n_leaves)

    @property
    def n_edges(self) -> int:
        return self._packed.shape[0]

    @property
    def n_leaves(self) -> int:
        return self._n_leaves

    @property
    def packed(self) -> np.ndarray:
        return self._packed

    @property
    def branch_lengths(self) -> np.ndarray:
        return self._branch_lengths

    @property
    def leaf_counts(self) -> np.ndarray:
        """Number of leaves below each edge."""
        if self._leaf_counts is None:
            self._leaf_counts = self.dense().sum(axis=1)
        return self._leaf_counts

    def is_under(self, edge: int, leaf: int) -> bool:
        """Whether leaf position ``leaf`` lies below ``edge``."""
        byte, bit = _bit_mask(leaf)
        return bool(self._packed[edge, byte] & bit)

    def dense(self) -> np.ndarray:
        """Unpack to the boolean ``E x L`` matrix."""
        return np.unpackbits(self._packed, axis=1, count=self._n_leaves).astype(bool)

    def row(self, edge: int) -> np.ndarray:
        """Characteristic vector of the leaves below ``edge``."""
        return np.unpackbits(self._packed[edge], count=self._n_leaves).astype(bool)

    def column(self, leaf: int) -> np.ndarray:
        """Edges on the path from ``leaf`` to the root."""
        byte, bit = _bit_mask(leaf)
        return (self._packed[:, byte] & bit) != 0

    def leaf_sets(self) -> list[frozenset[int]]:
        """Leaf positions below each edge, in edge order."""
        return [frozenset(np.flatnonzero(r).tolist()) for r in self.dense()]


# =============================================================================
# Sample Presence Projection
# =============================================================================


def _as_leaf_mask(tree_leaves: int, leaf_mask: np.ndarray) -> np.ndarray:
    mask = np.asarray(leaf_mask, dtype=bool)
    if mask.ndim != 1 or mask.shape[0] != tree_leaves:
        raise MismatchedDimensionsError("sample leaf mask", tree_leaves, mask.size)
    return mask


def project_sample(tree: PhyloTree, leaf_mask: np.ndarray) -> np.ndarray:
    """
    Edge presence vector for one sample by bottom-up propagation.

    Args:
        tree: Tree whose leaf order ``leaf_mask`` follows.
        leaf_mask: Length-L boolean vector of present leaves.

    Returns:
        Length-E boolean vector; entry ``e`` is True iff a present leaf lies
        below edge ``e``. An empty sample gives an all-False vector,
        root included.
    """
    return project_samples(tree, _as_leaf_mask(tree.n_leaves, leaf_mask)[np.newaxis, :])[0]


def project_samples(tree: PhyloTree, leaf_masks: np.ndarray) -> np.ndarray:
    """
    Edge presence vectors for a block of samples.

    Args:
        tree: Tree whose leaf order the masks follow.
        leaf_masks: ``N x L`` boolean array, one row per sample.

    Returns:
        ``N x E`` boolean array of presence vectors.
    """
    masks = np.asarray(leaf_masks, dtype=bool)
    if masks.ndim != 2 or masks.shape[1] != tree.n_leaves:
        width = masks.shape[-1] if masks.ndim else 0
        raise MismatchedDimensionsError("sample leaf mask block width", tree.n_leaves, width)

    # Edge-major so each propagation step is a contiguous row OR
    block = np.zeros((tree.n_edges, masks.shape[0]), dtype=bool)
    block[tree.leaf_nodes] = masks.T

    parent = tree.parent
    for node in tree.postorder().tolist():
        par = int(parent[node])
        if par >= 0:
            block[par] |= block[node]

    return np.ascontiguousarray(block.T)


def project_sample_from_matrix(matrix: PresenceMatrix, leaf_mask: np.ndarray) -> np.ndarray:
    """
    Edge presence vector as the OR of ``B`` rows over present leaf columns.

    Works directly on the packed rows: an edge is present when its row
    shares any set bit with the packed sample mask.
    """
    mask = _as_leaf_mask(matrix.n_leaves, leaf_mask)
    packed_mask = np.packbits(mask)
    return (matrix.packed & packed_mask).any(axis=1)
