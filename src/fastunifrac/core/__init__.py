"""
Core algorithms for unweighted UniFrac.

This module contains the array-backed tree, the edge-by-leaf presence
structures, the pairwise distance engine and the all-pairs matrix builder.
"""

from fastunifrac.core.distance import PairwiseResult, unifrac_distance
from fastunifrac.core.matrix import (
    DistanceMatrix,
    DistanceResult,
    UnifracCalculator,
    compute_unifrac,
)
from fastunifrac.core.presence import PresenceMatrix, project_sample, project_samples
from fastunifrac.core.table import SampleTable, TableAlignment
from fastunifrac.core.tree import PhyloTree

__all__ = [
    "DistanceMatrix",
    "DistanceResult",
    "PairwiseResult",
    "PhyloTree",
    "PresenceMatrix",
    "SampleTable",
    "TableAlignment",
    "UnifracCalculator",
    "compute_unifrac",
    "project_sample",
    "project_samples",
    "unifrac_distance",
]
