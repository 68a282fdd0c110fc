"""
fastunifrac: unweighted UniFrac distances between microbial communities.

Given a rooted phylogenetic tree and a table recording which taxa occur in
which samples, computes for every pair of samples the fraction of branch
length spanned by either sample that is not spanned by both.
"""

__version__ = "0.1.0"
__author__ = "fastunifrac developers"

from fastunifrac.core.matrix import DistanceMatrix, UnifracCalculator, compute_unifrac
from fastunifrac.core.table import SampleTable
from fastunifrac.core.tree import PhyloTree
from fastunifrac.models.config import UnifracConfig

__all__ = [
    "DistanceMatrix",
    "PhyloTree",
    "SampleTable",
    "UnifracCalculator",
    "UnifracConfig",
    "__version__",
    "compute_unifrac",
]
