"""Shared test configuration and fixtures."""

from collections.abc import Iterator

import pytest

import robot_scanner.core.config as config_module


@pytest.fixture(autouse=True)
def _reset_config_singleton() -> Iterator[None]:  # pyright: ignore[reportUnusedFunction]
    """Drop the cached ``ConfigLoader`` around every test.

    CLI commands read settings through ``get_config()``; clearing the
    singleton keeps environment patches in one test from leaking into the
    next.
    """
    config_module._config = None
    yield
    config_module._config = None
