"""Shared fixtures."""

from __future__ import annotations

import pytest

from spreadcore.logging import reset_sink


@pytest.fixture(autouse=True)
def _no_global_sink():
    """Keep the module-level event sink from leaking between tests."""
    reset_sink()
    yield
    reset_sink()
