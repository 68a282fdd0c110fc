"""
Unit tests for the array-backed PhyloTree.

Covers Newick parsing, node and leaf ordering, traversal orders, and
validation of malformed trees.
"""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from fastunifrac.core.exceptions import (
    DuplicateLeafNameError,
    EmptyTreeError,
    NegativeBranchLengthError,
    TreeParseError,
)
from fastunifrac.core.tree import PhyloTree


class TestFourTipTree:
    """Structure of ((T1:0.2,(T2:0.1,T3:0.4):0.3):0.5,T4:0.6);"""

    def test_counts(self, four_tip_tree: PhyloTree) -> None:
        assert four_tip_tree.n_nodes == 7
        assert four_tip_tree.n_edges == 7
        assert four_tip_tree.n_leaves == 4
        assert len(four_tip_tree) == 7

    def test_root_is_node_zero(self, four_tip_tree: PhyloTree) -> None:
        assert four_tip_tree.root == 0
        assert four_tip_tree.parent_edge(0) is None

    def test_parent_array(self, four_tip_tree: PhyloTree) -> None:
        assert four_tip_tree.parent.tolist() == [-1, 0, 1, 1, 3, 3, 0]

    def test_branch_lengths_in_edge_order(
        self,
        four_tip_tree: PhyloTree,
        four_tip_branch_lengths: np.ndarray,
    ) -> None:
        np.testing.assert_allclose(four_tip_tree.branch_lengths, four_tip_branch_lengths)

    def test_leaf_order_is_preorder(self, four_tip_tree: PhyloTree) -> None:
        assert four_tip_tree.leaf_names == ("T1", "T2", "T3", "T4")
        assert four_tip_tree.leaf_nodes.tolist() == [2, 4, 5, 6]
        assert dict(four_tip_tree.leaf_index) == {"T1": 0, "T2": 1, "T3": 2, "T4": 3}

    def test_children(self, four_tip_tree: PhyloTree) -> None:
        assert four_tip_tree.children[0] == (1, 6)
        assert four_tip_tree.children[1] == (2, 3)
        assert four_tip_tree.children[3] == (4, 5)
        assert four_tip_tree.is_leaf(4)
        assert not four_tip_tree.is_leaf(3)

    def test_preorder(self, four_tip_tree: PhyloTree) -> None:
        assert four_tip_tree.preorder().tolist() == [0, 1, 2, 3, 4, 5, 6]

    def test_postorder_children_before_parents(self, four_tip_tree: PhyloTree) -> None:
        assert four_tip_tree.postorder().tolist() == [2, 4, 5, 3, 1, 6, 0]

    def test_parent_edge(self, four_tip_tree: PhyloTree) -> None:
        assert four_tip_tree.parent_edge(4) == 3
        assert four_tip_tree.parent_edge(6) == 0

    def test_path_to_root(self, four_tip_tree: PhyloTree) -> None:
        assert four_tip_tree.path_to_root(4) == [4, 3, 1, 0]
        assert four_tip_tree.path_to_root(0) == [0]

    def test_total_length(self, four_tip_tree: PhyloTree) -> None:
        assert four_tip_tree.total_length == pytest.approx(2.1)

    def test_internal_label(self, four_tip_tree: PhyloTree) -> None:
        assert four_tip_tree.label(2) == "T1"
        assert four_tip_tree.label(3) == "<internal node 3>"


class TestImmutability:
    """Exposed arrays and mappings cannot be modified."""

    def test_arrays_read_only(self, four_tip_tree: PhyloTree) -> None:
        with pytest.raises(ValueError):
            four_tip_tree.parent[1] = 5
        with pytest.raises(ValueError):
            four_tip_tree.branch_lengths[1] = 9.0

    def test_leaf_index_read_only(self, four_tip_tree: PhyloTree) -> None:
        with pytest.raises(TypeError):
            four_tip_tree.leaf_index["T9"] = 9  # type: ignore[index]


class TestBranchLengths:
    """Handling of missing, root and negative lengths."""

    def test_missing_lengths_are_zero(self) -> None:
        tree = PhyloTree.from_newick("((A,B),C);")
        assert tree.total_length == 0.0
        assert tree.n_leaves == 3

    def test_root_length_ignored(self) -> None:
        tree = PhyloTree.from_newick("(A:1,B:2):5;")
        assert tree.branch_lengths[tree.root] == 0.0
        assert tree.total_length == pytest.approx(3.0)

    def test_nan_length_is_zero(self) -> None:
        tree = PhyloTree([-1, 0, 0], [None, float("nan"), 1.5], ["r", "A", "B"])
        assert tree.branch_lengths.tolist() == [0.0, 0.0, 1.5]

    def test_negative_length_rejected(self) -> None:
        with pytest.raises(NegativeBranchLengthError) as exc_info:
            PhyloTree([-1, 0, 0], [0.0, -0.5, 1.0], ["r", "A", "B"])
        assert exc_info.value.length == -0.5
        assert "A" in str(exc_info.value)


class TestValidation:
    """Malformed inputs raise descriptive errors."""

    def test_duplicate_leaf_names(self) -> None:
        with pytest.raises(DuplicateLeafNameError) as exc_info:
            PhyloTree.from_newick("((A:1,B:1):1,A:1);")
        assert exc_info.value.duplicates == ["A"]

    def test_empty_tree(self) -> None:
        with pytest.raises(EmptyTreeError):
            PhyloTree([], [], [])

    def test_unnamed_leaf(self) -> None:
        with pytest.raises(TreeParseError, match="no name"):
            PhyloTree([-1, 0, 0], [0.0, 1.0, 1.0], ["r", "A", None])

    def test_two_roots(self) -> None:
        with pytest.raises(TreeParseError, match="exactly one root"):
            PhyloTree([-1, -1], [0.0, 0.0], ["A", "B"])

    def test_cycle_unreachable(self) -> None:
        with pytest.raises(TreeParseError, match="not reachable"):
            PhyloTree([-1, 2, 1, 0], [0.0, 1.0, 1.0, 1.0], ["r", "x", "y", "A"])

    def test_self_parent(self) -> None:
        with pytest.raises(TreeParseError, match="invalid parent"):
            PhyloTree([-1, 1], [0.0, 1.0], ["r", "A"])

    def test_array_length_mismatch(self) -> None:
        with pytest.raises(TreeParseError, match="differ in length"):
            PhyloTree([-1, 0], [0.0], ["r", "A"])

    def test_unbalanced_newick(self) -> None:
        with pytest.raises(TreeParseError):
            PhyloTree.from_newick("((A:1,B:1);")


class TestFromFile:
    """Loading trees from disk."""

    def test_reads_file(self, tree_file: Path) -> None:
        tree = PhyloTree.from_file(tree_file)
        assert tree.leaf_names == ("T1", "T2", "T3", "T4")

    def test_missing_file(self, temp_dir: Path) -> None:
        with pytest.raises(FileNotFoundError):
            PhyloTree.from_file(temp_dir / "missing.nwk")


class TestDeepTrees:
    """Traversals are iterative and unaffected by tree depth."""

    def test_caterpillar(self, caterpillar_tree: PhyloTree) -> None:
        assert caterpillar_tree.n_leaves == 3000
        assert caterpillar_tree.leaf_names[0] == "L0"
        assert len(caterpillar_tree.path_to_root(int(caterpillar_tree.leaf_nodes[0]))) == 3000
        assert caterpillar_tree.postorder()[-1] == caterpillar_tree.root

    @pytest.mark.parametrize("seed", [0, 1, 2, 3])
    def test_random_tree_orders(self, make_random_tree, seed: int) -> None:
        tree = make_random_tree(seed)
        position = {node: i for i, node in enumerate(tree.postorder().tolist())}
        for node in range(tree.n_nodes):
            par = tree.parent_edge(node)
            if par is not None:
                assert position[node] < position[par]
