"""
Pydantic configuration models for fastunifrac.

These models define how a UniFrac run treats empty samples, how the
pairwise loop is parallelised and verified, and how the resulting
distance matrix is written. Configuration can be loaded from YAML files
or built from CLI arguments.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field

from fastunifrac.core.constants import (
    DEFAULT_FORMULATION_TOLERANCE,
    DEFAULT_OUTPUT_PRECISION,
    DEFAULT_PRESENCE_THRESHOLD,
    MAX_OUTPUT_PRECISION,
)

logger = logging.getLogger(__name__)

OutputFormat = Literal["tsv", "csv", "parquet"]
EmptySamplePolicy = Literal["keep", "reject"]


class UnifracConfig(BaseModel):
    """
    Configuration for an unweighted UniFrac run.

    Empty samples:
        A sample none of whose taxa are tree leaves covers no branch length.
        With ``empty_sample_policy="keep"`` it takes part in the matrix: its
        distance to any non-empty sample is 1.0 and to another empty sample
        is 0.0. With ``"reject"`` the run stops before any distance is
        computed.

    Verification:
        ``verify_formulations`` recomputes the shared branch length of every
        pair with the matrix-product form and fails the run on disagreement.
        It roughly doubles the pairwise cost and is meant for auditing.
    """

    threads: int = Field(
        default=1,
        ge=1,
        description="Worker threads for the pairwise loop (1 = calling thread only)",
    )
    empty_sample_policy: EmptySamplePolicy = Field(
        default="keep",
        description=(
            "'keep' reports distance 1.0 between an empty and a non-empty sample; "
            "'reject' aborts when any sample has no taxa in the tree."
        ),
    )
    verify_formulations: bool = Field(
        default=False,
        description="Cross-check every pair against the matrix-product formulation",
    )
    formulation_tolerance: float = Field(
        default=DEFAULT_FORMULATION_TOLERANCE,
        gt=0.0,
        le=1e-3,
        description="Relative tolerance for the formulation cross-check",
    )
    precision: int = Field(
        default=DEFAULT_OUTPUT_PRECISION,
        ge=0,
        le=MAX_OUTPUT_PRECISION,
        description="Decimal places for tsv/csv output",
    )
    output_format: OutputFormat = Field(
        default="tsv",
        description="Distance matrix output format",
    )
    presence_threshold: float = Field(
        default=DEFAULT_PRESENCE_THRESHOLD,
        ge=0.0,
        description="Table values strictly above this count as presence",
    )

    @classmethod
    def from_yaml(cls, path: Path) -> UnifracConfig:
        """
        Load configuration from a YAML file.

        The YAML file uses a nested structure (compute, verification,
        output, table sections). Unknown keys are ignored.

        Args:
            path: Path to YAML configuration file.

        Returns:
            UnifracConfig populated from YAML values merged with defaults.

        Raises:
            FileNotFoundError: If YAML file does not exist.
            ValueError: If the document is not a mapping or holds invalid values.
        """
        import yaml

        raw = yaml.safe_load(path.read_text())
        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            msg = f"YAML config must be a mapping, got {type(raw).__name__}"
            raise ValueError(msg)

        return cls(**_flatten_yaml_config(raw))

    def to_yaml(self, path: Path) -> None:
        """Write configuration to a YAML file."""
        path.write_text(self.to_yaml_str())

    def to_yaml_str(self) -> str:
        """Serialize configuration to a nested YAML string."""
        import yaml

        return yaml.dump(_build_yaml_structure(self), default_flow_style=False, sort_keys=False)

    def with_overrides(self, **overrides: Any) -> UnifracConfig:
        """
        Return a copy with non-None overrides applied and re-validated.

        Used by the CLI, where unset options arrive as None.
        """
        updates = {k: v for k, v in overrides.items() if v is not None}
        if not updates:
            return self
        return type(self)(**{**self.model_dump(), **updates})

    model_config = {"frozen": True}


def _flatten_yaml_config(raw: dict[str, Any]) -> dict[str, Any]:
    """
    Flatten nested YAML config structure into UnifracConfig keyword arguments.

    Maps the documented nested YAML structure:
        compute.threads -> threads
        verification.enabled -> verify_formulations
        output.format -> output_format
        table.presence_threshold -> presence_threshold
    """
    flat: dict[str, Any] = {}

    compute = raw.get("compute", {}) or {}
    _map_if_present(compute, "threads", flat, "threads")
    _map_if_present(compute, "empty_sample_policy", flat, "empty_sample_policy")

    verification = raw.get("verification", {}) or {}
    _map_if_present(verification, "enabled", flat, "verify_formulations")
    _map_if_present(verification, "tolerance", flat, "formulation_tolerance")

    output_sec = raw.get("output", {}) or {}
    _map_if_present(output_sec, "format", flat, "output_format")
    _map_if_present(output_sec, "precision", flat, "precision")

    table = raw.get("table", {}) or {}
    _map_if_present(table, "presence_threshold", flat, "presence_threshold")

    return flat


def _map_if_present(
    source: dict[str, Any],
    source_key: str,
    target: dict[str, Any],
    target_key: str,
) -> None:
    """Copy value from source dict to target dict if key exists."""
    if source_key in source and source[source_key] is not None:
        target[target_key] = source[source_key]


def _build_yaml_structure(config: UnifracConfig) -> dict[str, Any]:
    """Build nested YAML dict from a UnifracConfig instance."""
    return {
        "compute": {
            "threads": config.threads,
            "empty_sample_policy": config.empty_sample_policy,
        },
        "verification": {
            "enabled": config.verify_formulations,
            "tolerance": config.formulation_tolerance,
        },
        "output": {
            "format": config.output_format,
            "precision": config.precision,
        },
        "table": {
            "presence_threshold": config.presence_threshold,
        },
    }
