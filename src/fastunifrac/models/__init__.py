"""
Pydantic data models for fastunifrac.

Provides the type-safe run configuration.
"""

from fastunifrac.models.config import UnifracConfig

__all__ = ["UnifracConfig"]
