"""
Root pytest configuration.
"""

from __future__ import annotations

import os
import time
from collections.abc import Generator
from typing import Callable

import pytest


def get_test_timeout(base: float, max_multiplier: float = 5.0) -> float:
    """Apply CI timeout multiplier to a base timeout value.

    Environment:
        CI_TIMEOUT_MULTIPLIER: Multiplier for CI environments (default: 1.0)
    """
    raw = os.getenv("CI_TIMEOUT_MULTIPLIER", "1.0")
    try:
        multiplier = float(raw) if raw else 1.0
        multiplier = min(multiplier, max_multiplier)
    except ValueError:
        multiplier = 1.0
    return base * multiplier


def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    """Poll ``predicate`` from a sync test until it holds or time runs out."""
    deadline = time.monotonic() + get_test_timeout(timeout)
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test categorization."""
    config.addinivalue_line(
        "markers",
        "critical: Tests that must never fail - core functionality",
    )
    config.addinivalue_line(
        "markers",
        "integration: Tests that run the background dispatcher thread",
    )
    config.addinivalue_line(
        "markers",
        "property: Property-based tests (may be slow)",
    )


@pytest.fixture(autouse=True)
def reset_diagnostics() -> Generator[None, None, None]:
    """Reset the diagnostics enable cache and writer around each test.

    The diagnostics module caches the ``internal_logging_enabled`` setting at
    first access; each test starts from an unread cache.
    """
    import logshipper.core.diagnostics as diag

    diag._internal_logging_enabled = None
    diag.set_writer_for_tests(None)
    yield
    diag._internal_logging_enabled = None
    diag.set_writer_for_tests(None)


@pytest.fixture
def diagnostics_capture() -> Generator[list[dict], None, None]:
    """Enable diagnostics and collect emitted payloads."""
    import logshipper.core.diagnostics as diag

    captured: list[dict] = []
    diag._internal_logging_enabled = True
    diag.set_writer_for_tests(captured.append)
    yield captured


@pytest.fixture(autouse=True)
def _stop_registered_hooks() -> Generator[None, None, None]:
    """Stop any hook a test left running so its thread does not leak."""
    yield
    from logshipper.core import shutdown

    for hook in shutdown.registered_hooks():
        hook.stop(flush=False, timeout=0.5)


@pytest.fixture(name="wait_until")
def wait_until_fixture() -> Callable[..., bool]:
    return wait_until
