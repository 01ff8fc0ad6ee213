"""Shared fixtures for integration tests.

These tests wire real components (ProviderRouter, resolvers, StreamRelay,
the config loader) together with HTTP mocked via respx.
"""

from __future__ import annotations

import httpx
import pytest
import respx


@pytest.fixture()
def http_client() -> httpx.AsyncClient:
    """Real httpx.AsyncClient for use with respx mocking."""
    return httpx.AsyncClient()


@pytest.fixture()
def respx_mock() -> respx.MockRouter:
    """Explicit respx mock router for request interception."""
    with respx.mock(assert_all_called=False) as router:
        yield router
