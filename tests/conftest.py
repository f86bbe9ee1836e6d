"""Pytest configuration: make `src` and `client` importable from a checkout."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


@pytest.fixture(autouse=True)
def _isolated_settings():
    """Keep server settings from leaking between tests through the lru cache."""
    from src.api.deps.auth import reset_auth_service_cache
    from src.api.settings import get_settings

    get_settings.cache_clear()
    reset_auth_service_cache()
    yield
    get_settings.cache_clear()
    reset_auth_service_cache()
