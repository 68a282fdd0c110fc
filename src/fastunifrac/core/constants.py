"""
Constants used throughout the fastunifrac package.

Centralizes default values and file layout strings to keep the
core, I/O and CLI layers consistent.
"""

from __future__ import annotations

# =============================================================================
# Tree Constants
# =============================================================================

# Length carried by the synthetic edge above the root
ROOT_BRANCH_LENGTH = 0.0

# Parent id stored for the root node
NO_PARENT = -1

# =============================================================================
# Distance Constants
# =============================================================================

# Distance reported when neither sample covers any branch length.
# Lozupone & Knight leave this case undefined; two empty communities are
# treated as identical.
EMPTY_UNION_DISTANCE = 0.0

# Tolerance for the direct-sum vs matrix-product cross-check, relative above 1.0
DEFAULT_FORMULATION_TOLERANCE = 1e-9

# =============================================================================
# File Layout Constants
# =============================================================================

# Header cell above the sample-name column in written distance matrices
MATRIX_INDEX_COLUMN = "Sample"

# Decimal places used by the original tab-delimited output
DEFAULT_OUTPUT_PRECISION = 6

# Largest meaningful number of decimals for float64 output
MAX_OUTPUT_PRECISION = 17

# Abundance strictly above this value counts as presence
DEFAULT_PRESENCE_THRESHOLD = 0.0
