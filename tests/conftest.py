"""
Shared pytest fixtures for fastunifrac tests.

Provides reusable trees, sample tables, temporary files, and seeded
random trees for unit and integration testing.
"""

from __future__ import annotations

import tempfile
from pathlib import Path

import numpy as np
import pytest

from fastunifrac.core.table import SampleTable
from fastunifrac.core.tree import PhyloTree

# =============================================================================
# Tree Fixtures
# =============================================================================

# Preorder node ids: 0 root, 1 (T1,(T2,T3)) clade, 2 T1, 3 (T2,T3) clade,
# 4 T2, 5 T3, 6 T4
FOUR_TIP_NEWICK = "((T1:0.2,(T2:0.1,T3:0.4):0.3):0.5,T4:0.6);"
FOUR_TIP_BRANCH_LENGTHS = [0.0, 0.5, 0.2, 0.3, 0.1, 0.4, 0.6]


def random_tree(seed: int, n_nodes: int = 40) -> PhyloTree:
    """Random rooted tree where every parent id precedes its children."""
    rng = np.random.default_rng(seed)
    parent = [-1] + [int(rng.integers(0, i)) for i in range(1, n_nodes)]
    lengths = rng.uniform(0.0, 1.0, size=n_nodes).round(3).tolist()
    names = [f"n{i}" for i in range(n_nodes)]
    return PhyloTree(parent, lengths, names)


def random_masks(tree: PhyloTree, n_samples: int, seed: int) -> np.ndarray:
    """Random N x L leaf masks with at least one all-absent row when N > 2."""
    rng = np.random.default_rng(seed)
    masks = rng.random((n_samples, tree.n_leaves)) < 0.4
    if n_samples > 2:
        masks[-1] = False
    return masks


@pytest.fixture
def make_random_tree():
    """Factory for seeded random trees."""
    return random_tree


@pytest.fixture
def make_random_masks():
    """Factory for seeded random leaf masks."""
    return random_masks


@pytest.fixture
def four_tip_branch_lengths() -> np.ndarray:
    """Edge lengths of the four-tip tree in edge order."""
    return np.array(FOUR_TIP_BRANCH_LENGTHS)


@pytest.fixture
def four_tip_newick() -> str:
    """Four-tip reference tree in Newick format."""
    return FOUR_TIP_NEWICK


@pytest.fixture
def four_tip_tree() -> PhyloTree:
    """Four-tip reference tree with leaf order [T1, T2, T3, T4]."""
    return PhyloTree.from_newick(FOUR_TIP_NEWICK)


@pytest.fixture
def caterpillar_tree() -> PhyloTree:
    """Deep ladder tree, deeper than any reasonable recursion limit."""
    depth = 3000
    newick = "L0:1.0"
    for i in range(1, depth):
        newick = f"({newick},L{i}:1.0):1.0"
    return PhyloTree.from_newick(f"{newick};")


# =============================================================================
# Sample Table Fixtures
# =============================================================================


@pytest.fixture
def three_sample_table() -> SampleTable:
    """Samples A (all tips), B ({T2, T3}) and C ({T4})."""
    return SampleTable.from_mapping(
        {
            "A": {"T1": 3, "T2": 1, "T3": 7, "T4": 2},
            "B": {"T2": 5, "T3": 1},
            "C": {"T4": 9},
        }
    )


@pytest.fixture
def table_text() -> str:
    """Tab-delimited table in the feature-table layout."""
    return (
        "#OTU ID\tA\tB\tC\n"
        "T1\t3\t0\t0\n"
        "T2\t1\t5\t0\n"
        "T3\t7\t1\t0\n"
        "T4\t2\t0\t9\n"
    )


# =============================================================================
# Temporary File Fixtures
# =============================================================================


@pytest.fixture
def temp_dir() -> Path:
    """Temporary directory that is cleaned up after tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def tree_file(temp_dir: Path, four_tip_newick: str) -> Path:
    """Newick file holding the four-tip tree."""
    path = temp_dir / "tree.nwk"
    path.write_text(four_tip_newick + "\n")
    return path


@pytest.fixture
def table_file(temp_dir: Path, table_text: str) -> Path:
    """Tab-delimited sample table file."""
    path = temp_dir / "table.tsv"
    path.write_text(table_text)
    return path
