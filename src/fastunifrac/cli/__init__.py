"""
CLI commands for fastunifrac.

Provides the command-line interface for computing distance matrices,
validating inputs and managing configuration files.
"""

__all__ = ["compute", "config", "main", "validate"]
