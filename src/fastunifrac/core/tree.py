"""
Array-backed rooted phylogenetic tree.

Nodes live in an arena indexed by integer id and are linked through a
parent array, so every traversal is iterative and tree depth is never
limited by the interpreter's recursion limit. Each node owns the edge
above it, which makes node ids double as edge ids; the root carries a
synthetic edge of length zero.

Trees are read from Newick via BioPython's ``Bio.Phylo`` and converted
once into the arena representation.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Sequence
from io import StringIO
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

import numpy as np

from fastunifrac.core.constants import NO_PARENT, ROOT_BRANCH_LENGTH
from fastunifrac.core.exceptions import (
    DuplicateLeafNameError,
    EmptyTreeError,
    NegativeBranchLengthError,
    TreeParseError,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from Bio.Phylo.BaseTree import Clade, Tree

logger = logging.getLogger(__name__)


class PhyloTree:
    """
    Rooted tree stored as parallel NumPy arrays.

    Edge ``e`` is the edge above node ``e``. The edge order is the node id
    order, so the parent edge of ``e`` is simply ``parent[e]``.

    Leaves are numbered ``0..L-1`` in the order a depth-first preorder
    traversal first meets them. This leaf order is fixed for the lifetime
    of the tree and every presence vector and table column is expressed
    in it.

    The tree is immutable after construction: all exposed arrays are
    read-only views.
    """

    __slots__ = (
        "_branch_lengths",
        "_children",
        "_leaf_index",
        "_leaf_names",
        "_leaf_nodes",
        "_names",
        "_parent",
        "_postorder",
        "_preorder",
        "_root",
    )

    def __init__(
        self,
        parent: Sequence[int] | np.ndarray,
        branch_lengths: Sequence[float | None] | np.ndarray,
        names: Sequence[str | None],
    ) -> None:
        """
        Build a tree from parallel per-node arrays.

        Args:
            parent: Parent node id for each node, ``-1`` for the root.
            branch_lengths: Length of the edge above each node. ``None`` and
                NaN are treated as 0; the root's value is ignored.
            names: Node names; every leaf must be named.

        Raises:
            EmptyTreeError: If no nodes are given.
            TreeParseError: If the arrays do not describe a single rooted tree
                or a leaf is unnamed.
            NegativeBranchLengthError: If any edge length is negative.
            DuplicateLeafNameError: If leaf names are not unique.
        """
        n_nodes = len(parent)
        if n_nodes == 0:
            raise EmptyTreeError
        if len(branch_lengths) != n_nodes or len(names) != n_nodes:
            raise TreeParseError(
                "node arrays",
                f"parent ({n_nodes}), branch length ({len(branch_lengths)}) and "
                f"name ({len(names)}) arrays differ in length",
            )

        parent_arr = np.asarray(parent, dtype=np.int64).copy()
        self._names: tuple[str | None, ...] = tuple(names)

        roots = np.flatnonzero(parent_arr == NO_PARENT)
        if len(roots) != 1:
            raise TreeParseError("node arrays", f"expected exactly one root, found {len(roots)}")
        self._root = int(roots[0])

        invalid = (parent_arr < NO_PARENT) | (parent_arr >= n_nodes)
        invalid |= parent_arr == np.arange(n_nodes)
        if invalid.any():
            bad = int(np.flatnonzero(invalid)[0])
            raise TreeParseError("node arrays", f"node {bad} has invalid parent {parent_arr[bad]}")

        children: list[list[int]] = [[] for _ in range(n_nodes)]
        for node, par in enumerate(parent_arr.tolist()):
            if par != NO_PARENT:
                children[par].append(node)
        self._children: tuple[tuple[int, ...], ...] = tuple(tuple(c) for c in children)

        # Iterative preorder from the root; anything unreached sits on a cycle
        preorder: list[int] = []
        stack = [self._root]
        while stack:
            node = stack.pop()
            preorder.append(node)
            stack.extend(reversed(self._children[node]))
        if len(preorder) != n_nodes:
            raise TreeParseError(
                "node arrays",
                f"{n_nodes - len(preorder)} node(s) are not reachable from the root",
            )
        self._preorder = _readonly(np.asarray(preorder, dtype=np.int64))
        self._postorder = _readonly(_postorder_from(self._root, self._children, n_nodes))

        lengths = np.array(
            [np.nan if b is None else b for b in branch_lengths], dtype=np.float64
        )
        lengths[np.isnan(lengths)] = 0.0
        lengths[self._root] = ROOT_BRANCH_LENGTH
        negative = np.flatnonzero(lengths < 0)
        if len(negative):
            node = int(negative[0])
            raise NegativeBranchLengthError(self.label(node), float(lengths[node]))

        self._parent = _readonly(parent_arr)
        self._branch_lengths = _readonly(lengths)

        leaf_nodes = [node for node in preorder if not self._children[node]]
        leaf_names: list[str] = []
        for node in leaf_nodes:
            name = self._names[node]
            if not name:
                raise TreeParseError("node arrays", f"leaf node {node} has no name")
            leaf_names.append(name)

        duplicates = [name for name, count in Counter(leaf_names).items() if count > 1]
        if duplicates:
            raise DuplicateLeafNameError(duplicates)

        self._leaf_nodes = _readonly(np.asarray(leaf_nodes, dtype=np.int64))
        self._leaf_names: tuple[str, ...] = tuple(leaf_names)
        self._leaf_index: Mapping[str, int] = MappingProxyType(
            {name: pos for pos, name in enumerate(leaf_names)}
        )

    # ------------------------------------------------------------------
    # Construction from Newick
    # ------------------------------------------------------------------

    @classmethod
    def from_clade(cls, tree: Tree | Clade) -> PhyloTree:
        """
        Convert a parsed ``Bio.Phylo`` tree or clade.

        Node ids are assigned in preorder, so the root is node 0 and every
        parent id is smaller than its children's ids.
        """
        root = getattr(tree, "root", tree)
        parent: list[int] = []
        lengths: list[float | None] = []
        names: list[str | None] = []

        stack: list[tuple[Any, int]] = [(root, NO_PARENT)]
        while stack:
            clade, par = stack.pop()
            node = len(parent)
            parent.append(par)
            lengths.append(clade.branch_length)
            names.append(clade.name)
            for child in reversed(clade.clades):
                stack.append((child, node))

        return cls(parent, lengths, names)

    @classmethod
    def from_newick(cls, text: str) -> PhyloTree:
        """Parse a single Newick tree string."""
        return cls._read(StringIO(text), "newick string")

    @classmethod
    def from_file(cls, path: Path) -> PhyloTree:
        """
        Load a Newick tree file.

        Raises:
            FileNotFoundError: If the file does not exist.
            TreeParseError: If the file does not hold exactly one Newick tree.
        """
        if not path.exists():
            msg = f"Tree file not found: {path}"
            raise FileNotFoundError(msg)
        with path.open() as handle:
            tree = cls._read(handle, str(path))
        logger.info(
            "Loaded tree from %s: %d nodes, %d leaves", path, tree.n_nodes, tree.n_leaves
        )
        return tree

    @classmethod
    def _read(cls, handle: Any, source: str) -> PhyloTree:
        from Bio import Phylo
        from Bio.Phylo.NewickIO import NewickError

        try:
            parsed = Phylo.read(handle, "newick")
        except (ValueError, NewickError) as e:
            raise TreeParseError(source, str(e)) from e
        return cls.from_clade(parsed)

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    @property
    def n_nodes(self) -> int:
        """Number of nodes, root included."""
        return len(self._parent)

    @property
    def n_edges(self) -> int:
        """Number of edges; equals ``n_nodes`` because the root has a synthetic edge."""
        return len(self._parent)

    @property
    def n_leaves(self) -> int:
        return len(self._leaf_nodes)

    @property
    def root(self) -> int:
        return self._root

    @property
    def parent(self) -> np.ndarray:
        """Parent id per node (read-only), ``-1`` for the root."""
        return self._parent

    @property
    def branch_lengths(self) -> np.ndarray:
        """Edge length per node (read-only); the root entry is 0."""
        return self._branch_lengths

    @property
    def names(self) -> tuple[str | None, ...]:
        return self._names

    @property
    def children(self) -> tuple[tuple[int, ...], ...]:
        return self._children

    @property
    def leaf_names(self) -> tuple[str, ...]:
        """Leaf names in leaf order."""
        return self._leaf_names

    @property
    def leaf_nodes(self) -> np.ndarray:
        """Node id of each leaf position (read-only)."""
        return self._leaf_nodes

    @property
    def leaf_index(self) -> Mapping[str, int]:
        """Mapping from leaf name to leaf position."""
        return self._leaf_index

    @property
    def total_length(self) -> float:
        return float(self._branch_lengths.sum())

    def is_leaf(self, node: int) -> bool:
        return not self._children[node]

    def parent_edge(self, edge: int) -> int | None:
        """Index of the edge directly above ``edge``, or None for the root edge."""
        par = int(self._parent[edge])
        return None if par == NO_PARENT else par

    def preorder(self) -> np.ndarray:
        """Node ids with every parent before its children."""
        return self._preorder

    def postorder(self) -> np.ndarray:
        """Node ids with every child before its parent, root last."""
        return self._postorder

    def path_to_root(self, node: int) -> list[int]:
        """Edges from ``node`` up to and including the root edge."""
        path = [node]
        par = int(self._parent[node])
        while par != NO_PARENT:
            path.append(par)
            par = int(self._parent[par])
        return path

    def label(self, node: int) -> str:
        """Human-readable label for a node, used in messages."""
        name = self._names[node]
        return name if name else f"<internal node {node}>"

    def __len__(self) -> int:
        return self.n_nodes

    def __repr__(self) -> str:
        return (
            f"PhyloTree(n_nodes={self.n_nodes}, n_leaves={self.n_leaves}, "
            f"total_length={self.total_length:.6g})"
        )


def _postorder_from(
    root: int,
    children: tuple[tuple[int, ...], ...],
    n_nodes: int,
) -> np.ndarray:
    """Iterative left-to-right postorder."""
    order = np.empty(n_nodes, dtype=np.int64)
    pos = 0
    stack: list[tuple[int, bool]] = [(root, False)]
    while stack:
        node, expanded = stack.pop()
        if expanded:
            order[pos] = node
            pos += 1
            continue
        stack.append((node, True))
        for child in reversed(children[node]):
            stack.append((child, False))
    return order


def _readonly(arr: np.ndarray) -> np.ndarray:
    arr.flags.writeable = False
    return arr
