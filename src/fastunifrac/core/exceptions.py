"""
Custom exceptions with actionable guidance.

Provides specific error types for tree, sample table and internal
consistency failures, each with a helpful suggestion for resolution.
"""

from __future__ import annotations


def _format_examples(names: list[str], limit: int = 5) -> str:
    shown = ", ".join(names[:limit])
    if len(names) > limit:
        shown += f"... and {len(names) - limit} more"
    return shown


class FastUnifracError(Exception):
    """Base exception for fastunifrac errors."""

    def __init__(self, message: str, suggestion: str | None = None):
        self.message = message
        self.suggestion = suggestion
        super().__init__(self.full_message)

    @property
    def full_message(self) -> str:
        if self.suggestion:
            return f"{self.message}\n\nSuggestion: {self.suggestion}"
        return self.message


# =============================================================================
# Tree Errors
# =============================================================================


class TreeError(FastUnifracError):
    """Base class for phylogenetic tree errors."""



class TreeParseError(TreeError):
    """Raised when a tree cannot be read or converted."""

    def __init__(self, source: str, reason: str):
        super().__init__(
            message=f"Could not read tree from {source}: {reason}",
            suggestion=(
                "The tree must be a single rooted Newick tree terminated by ';' "
                "with every tip named, e.g. ((A:0.1,B:0.2):0.3,C:0.4);"
            ),
        )
        self.source = source
        self.reason = reason


class EmptyTreeError(TreeError):
    """Raised when a tree has no leaves."""

    def __init__(self) -> None:
        super().__init__(
            message="Tree contains no leaves",
            suggestion="Check that the Newick file is not empty or truncated.",
        )


class DuplicateLeafNameError(TreeError):
    """Raised when two or more leaves share a name."""

    def __init__(self, duplicates: list[str]):
        self.duplicates = sorted(duplicates)
        super().__init__(
            message=(
                f"Tree contains {len(self.duplicates)} duplicated leaf name(s): "
                f"{_format_examples(self.duplicates)}"
            ),
            suggestion=(
                "Leaf names identify taxa in the sample table and must be unique. "
                "Rename or remove the duplicated tips before computing distances."
            ),
        )


class NegativeBranchLengthError(TreeError):
    """Raised when a branch length is negative."""

    def __init__(self, node_name: str, length: float):
        super().__init__(
            message=f"Branch above '{node_name}' has negative length {length}",
            suggestion=(
                "UniFrac requires non-negative branch lengths. Negative lengths "
                "usually come from neighbor-joining; clip them to 0 before use."
            ),
        )
        self.node_name = node_name
        self.length = length


# =============================================================================
# Sample Table Errors
# =============================================================================


class SampleTableError(FastUnifracError):
    """Base class for sample table errors."""



class EmptySampleTableError(SampleTableError):
    """Raised when a sample table has no samples."""

    def __init__(self, path: str):
        super().__init__(
            message=f"Sample table is empty or contains no sample columns: {path}",
            suggestion=(
                "The first line must be a header whose first cell is ignored and "
                "whose remaining cells are sample names, followed by one line per "
                "taxon."
            ),
        )


class MalformedSampleTableError(SampleTableError):
    """Raised when a sample table row does not match the header."""

    def __init__(self, path: str, reason: str):
        super().__init__(
            message=f"Malformed sample table '{path}': {reason}",
            suggestion=(
                "Every row must hold a taxon name followed by exactly one value per "
                "sample, separated by tabs (or commas for .csv files)."
            ),
        )


class DuplicateSampleError(SampleTableError):
    """Raised when sample names repeat in the table header."""

    def __init__(self, duplicates: list[str]):
        self.duplicates = sorted(duplicates)
        super().__init__(
            message=f"Sample table repeats sample name(s): {_format_examples(self.duplicates)}",
            suggestion="Sample names label the distance matrix and must be unique.",
        )


class DuplicateTaxonError(SampleTableError):
    """Raised when taxon names repeat in the table."""

    def __init__(self, duplicates: list[str]):
        self.duplicates = sorted(duplicates)
        super().__init__(
            message=f"Sample table repeats taxon name(s): {_format_examples(self.duplicates)}",
            suggestion="Merge the duplicated rows so each taxon appears once.",
        )


class EmptySampleError(SampleTableError):
    """Raised when empty samples are rejected by configuration."""

    def __init__(self, samples: list[str]):
        self.samples = list(samples)
        super().__init__(
            message=(
                f"{len(self.samples)} sample(s) contain no taxa present in the tree: "
                f"{_format_examples(self.samples)}"
            ),
            suggestion=(
                "Remove these samples, check that taxon names match tree leaf names, "
                "or use --empty-samples keep to report distance 1.0 to non-empty samples."
            ),
        )


class UnknownTaxaWarning(SampleTableError):
    """Diagnostic for table taxa that are absent from the tree.

    Not raised by the library; the taxa are dropped and this object is
    attached to the alignment result so callers can report it.
    """

    def __init__(self, unknown: list[str], total: int):
        self.unknown = sorted(unknown)
        self.total = total
        super().__init__(
            message=(
                f"{len(self.unknown)}/{total} taxa in the sample table are not "
                f"leaves of the tree and were ignored"
            ),
            suggestion=(
                f"Unknown taxa: {_format_examples(self.unknown)}\n\n"
                "Taxa are matched to leaf names by exact string equality. "
                "Check for differing identifier versions or quoting."
            ),
        )


# =============================================================================
# Internal Invariant Errors
# =============================================================================


class InternalInvariantError(FastUnifracError):
    """Raised when an internal consistency check fails.

    These indicate a bug rather than bad input.
    """



class MismatchedDimensionsError(InternalInvariantError):
    """Raised when vector or matrix dimensions disagree."""

    def __init__(self, what: str, expected: int, actual: int):
        super().__init__(
            message=f"Dimension mismatch for {what}: expected {expected}, got {actual}",
            suggestion="This is an internal error; please report it with the input files.",
        )
        self.what = what
        self.expected = expected
        self.actual = actual


class FormulationMismatchError(InternalInvariantError):
    """Raised when the direct and matrix-product shared lengths disagree."""

    def __init__(self, direct: float, product: float, tolerance: float):
        super().__init__(
            message=(
                f"Shared branch length differs between direct sum ({direct!r}) and "
                f"matrix product ({product!r}) beyond tolerance {tolerance}"
            ),
            suggestion="This is an internal error; please report it with the input files.",
        )
        self.direct = direct
        self.product = product
        self.tolerance = tolerance


class PresenceMismatchError(InternalInvariantError):
    """Raised when propagated presence disagrees with the incidence matrix."""

    def __init__(self, sample: str, n_edges: int):
        super().__init__(
            message=(
                f"Edge presence for sample '{sample}' differs on {n_edges} edge(s) "
                "between bottom-up propagation and the incidence matrix"
            ),
            suggestion="This is an internal error; please report it with the input files.",
        )
        self.sample = sample
        self.n_edges = n_edges


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(FastUnifracError):
    """Raised when configuration is invalid."""



class InvalidThresholdError(ConfigurationError):
    """Raised when a numeric parameter is out of valid range."""

    def __init__(self, param_name: str, value: float, min_val: float, max_val: float):
        super().__init__(
            message=f"{param_name} = {value} is out of valid range [{min_val}, {max_val}]",
            suggestion=f"Set {param_name} to a value between {min_val} and {max_val}.",
        )
