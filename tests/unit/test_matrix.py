"""
Unit tests for DistanceMatrix and the all-pairs UniFrac calculator.
"""

from __future__ import annotations

import numpy as np
import pytest

from fastunifrac.core import matrix as matrix_module
from fastunifrac.core.distance import unifrac_distance
from fastunifrac.core.exceptions import (
    EmptySampleError,
    MismatchedDimensionsError,
    PresenceMismatchError,
)
from fastunifrac.core.matrix import DistanceMatrix, UnifracCalculator, compute_unifrac
from fastunifrac.core.presence import project_sample
from fastunifrac.core.table import SampleTable
from fastunifrac.core.tree import PhyloTree
from fastunifrac.models.config import UnifracConfig


# =============================================================================
# DistanceMatrix
# =============================================================================


@pytest.fixture
def small_matrix() -> DistanceMatrix:
    values = np.array(
        [
            [0.0, 0.1, 0.2],
            [0.1, 0.0, 0.3],
            [0.2, 0.3, 0.0],
        ]
    )
    return DistanceMatrix(["A", "B", "C"], values)


class TestDistanceMatrix:
    """Container validation and accessors."""

    def test_lookup_by_name_and_index(self, small_matrix: DistanceMatrix) -> None:
        assert small_matrix["A", "C"] == 0.2
        assert small_matrix[1, 2] == 0.3
        assert small_matrix["B", 0] == 0.1
        assert small_matrix.index_of("C") == 2

    def test_unknown_sample(self, small_matrix: DistanceMatrix) -> None:
        with pytest.raises(KeyError):
            small_matrix["A", "Z"]

    def test_condensed_order(self, small_matrix: DistanceMatrix) -> None:
        assert small_matrix.condensed().tolist() == [0.1, 0.2, 0.3]

    def test_to_polars(self, small_matrix: DistanceMatrix) -> None:
        df = small_matrix.to_polars()
        assert df.columns == ["Sample", "A", "B", "C"]
        assert df.get_column("Sample").to_list() == ["A", "B", "C"]
        assert df.get_column("C").to_list() == [0.2, 0.3, 0.0]

    def test_index_column_avoids_sample_names(self) -> None:
        values = np.array([[0.0, 1.0, 0.5], [1.0, 0.0, 0.2], [0.5, 0.2, 0.0]])
        matrix = DistanceMatrix(["Sample", "Sample_", "B"], values)
        assert matrix.index_column == "Sample__"

        df = matrix.to_polars()
        assert df.columns == ["Sample__", "Sample", "Sample_", "B"]
        assert df.get_column("Sample__").to_list() == ["Sample", "Sample_", "B"]
        assert df.get_column("Sample").to_list() == [0.0, 1.0, 0.5]

    def test_values_read_only(self, small_matrix: DistanceMatrix) -> None:
        with pytest.raises(ValueError):
            small_matrix.values[0, 1] = 0.5

    def test_equality(self, small_matrix: DistanceMatrix) -> None:
        same = DistanceMatrix(["A", "B", "C"], small_matrix.values)
        assert same == small_matrix
        assert len(same) == 3

    def test_rejects_asymmetric(self) -> None:
        with pytest.raises(ValueError, match="symmetric"):
            DistanceMatrix(["A", "B"], np.array([[0.0, 0.1], [0.2, 0.0]]))

    def test_rejects_nonzero_diagonal(self) -> None:
        with pytest.raises(ValueError, match="diagonal"):
            DistanceMatrix(["A", "B"], np.array([[0.1, 0.2], [0.2, 0.0]]))

    def test_rejects_wrong_shape(self) -> None:
        with pytest.raises(ValueError, match="2x2"):
            DistanceMatrix(["A", "B"], np.zeros((3, 3)))

    def test_rejects_duplicate_names(self) -> None:
        with pytest.raises(ValueError, match="unique"):
            DistanceMatrix(["A", "A"], np.zeros((2, 2)))


# =============================================================================
# UnifracCalculator
# =============================================================================


class TestThreeSampleMatrix:
    """N=3 on the four-tip tree: A = all tips, B = {T2, T3}, C = {T4}."""

    def test_values(self, four_tip_tree: PhyloTree, three_sample_table: SampleTable) -> None:
        dm = compute_unifrac(four_tip_tree, three_sample_table).matrix
        assert dm.sample_names == ("A", "B", "C")
        assert dm["A", "B"] == pytest.approx(1 - 1.3 / 2.1)
        assert dm["A", "C"] == pytest.approx(1 - 0.6 / 2.1)
        assert dm["B", "C"] == 1.0

    def test_symmetric_zero_diagonal(
        self,
        four_tip_tree: PhyloTree,
        three_sample_table: SampleTable,
    ) -> None:
        values = compute_unifrac(four_tip_tree, three_sample_table).matrix.values
        assert values.shape == (3, 3)
        np.testing.assert_array_equal(values, values.T)
        np.testing.assert_array_equal(np.diag(values), np.zeros(3))

    def test_cells_match_independent_pairs(
        self,
        four_tip_tree: PhyloTree,
        three_sample_table: SampleTable,
    ) -> None:
        dm = compute_unifrac(four_tip_tree, three_sample_table).matrix
        masks = three_sample_table.align_to_tree(four_tip_tree).leaf_masks
        presence = [project_sample(four_tip_tree, m) for m in masks]
        for i in range(3):
            for j in range(3):
                if i == j:
                    continue
                expected = unifrac_distance(
                    presence[i], presence[j], four_tip_tree.branch_lengths
                ).distance
                assert dm[i, j] == expected

    def test_result_carries_alignment(
        self,
        four_tip_tree: PhyloTree,
        three_sample_table: SampleTable,
    ) -> None:
        result = compute_unifrac(four_tip_tree, three_sample_table)
        assert result.alignment.sample_names == ("A", "B", "C")
        assert result.alignment.n_matched == 4


class TestEmptySamples:
    """Empty-sample policy."""

    @pytest.fixture
    def table_with_empty(self) -> SampleTable:
        return SampleTable.from_mapping(
            {
                "full": {"T1": 1, "T4": 1},
                "empty1": {"X": 1},
                "empty2": {"Y": 2},
            }
        )

    def test_keep(self, four_tip_tree: PhyloTree, table_with_empty: SampleTable) -> None:
        dm = compute_unifrac(four_tip_tree, table_with_empty).matrix
        assert dm["full", "empty1"] == 1.0
        assert dm["full", "empty2"] == 1.0
        assert dm["empty1", "empty2"] == 0.0

    def test_reject(self, four_tip_tree: PhyloTree, table_with_empty: SampleTable) -> None:
        config = UnifracConfig(empty_sample_policy="reject")
        with pytest.raises(EmptySampleError) as exc_info:
            compute_unifrac(four_tip_tree, table_with_empty, config)
        assert exc_info.value.samples == ["empty1", "empty2"]


class TestParallel:
    """Thread-partitioned rows give the same matrix as the serial loop."""

    @pytest.mark.parametrize("seed", [0, 1, 2])
    def test_threads_equal_serial(self, make_random_tree, make_random_masks, seed: int) -> None:
        tree = make_random_tree(seed, n_nodes=80)
        masks = make_random_masks(tree, 12, seed)

        serial = UnifracCalculator(tree, UnifracConfig(threads=1))
        parallel = UnifracCalculator(tree, UnifracConfig(threads=4))
        presence = serial.project(masks)

        np.testing.assert_array_equal(serial.pairwise(presence), parallel.pairwise(presence))

    def test_single_sample(self, four_tip_tree: PhyloTree) -> None:
        table = SampleTable.from_mapping({"only": {"T1": 1}})
        dm = compute_unifrac(four_tip_tree, table, UnifracConfig(threads=4)).matrix
        assert dm.values.tolist() == [[0.0]]
        assert dm.condensed().size == 0


class TestVerification:
    """Optional cross-checks during computation."""

    def test_verify_passes(self, make_random_tree, make_random_masks) -> None:
        tree = make_random_tree(3, n_nodes=60)
        masks = make_random_masks(tree, 5, 3)
        calc = UnifracCalculator(tree, UnifracConfig(verify_formulations=True))
        values = calc.pairwise(calc.project(masks))
        assert values.shape == (5, 5)

    def test_presence_mismatch_detected(
        self,
        four_tip_tree: PhyloTree,
        three_sample_table: SampleTable,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setattr(
            matrix_module,
            "project_sample_from_matrix",
            lambda matrix, mask: np.zeros(matrix.n_edges, dtype=bool),
        )
        config = UnifracConfig(verify_formulations=True)
        with pytest.raises(PresenceMismatchError) as exc_info:
            compute_unifrac(four_tip_tree, three_sample_table, config)
        assert exc_info.value.sample == "A"

    def test_incidence_built_lazily(self, four_tip_tree: PhyloTree) -> None:
        calc = UnifracCalculator(four_tip_tree)
        assert calc._incidence is None
        assert calc.incidence.shape == (7, 4)

    def test_pairwise_rejects_wrong_width(self, four_tip_tree: PhyloTree) -> None:
        calc = UnifracCalculator(four_tip_tree)
        with pytest.raises(MismatchedDimensionsError):
            calc.pairwise(np.zeros((2, 5), dtype=bool))
