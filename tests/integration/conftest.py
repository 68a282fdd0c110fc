"""Shared conftest for integration tests."""

from __future__ import annotations

import logging

import pytest


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Drop the handler and level the CLI installs on the package logger."""
    package_logger = logging.getLogger("fastunifrac")
    handlers = list(package_logger.handlers)
    level = package_logger.level
    yield
    package_logger.handlers = handlers
    package_logger.setLevel(level)
