"""Fixtures for HTTP-level tests."""

import pytest
from fastapi.testclient import TestClient

from rtdn_collector.main import app


@pytest.fixture
def client():
    """Test client with the app lifespan running."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def lenient_client():
    """Test client that returns 500 responses instead of raising."""
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
