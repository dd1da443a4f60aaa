"""API test fixtures - TestClient over an in-memory ledger."""

import pytest
from starlette.testclient import TestClient

from api.app import create_app
from api.middleware import ACTOR_HEADER


@pytest.fixture
def app(store, config):
    """Full app sharing the test store, so service fixtures and HTTP calls see the same data."""
    return create_app(store, config)


@pytest.fixture
def services(app):
    return app.state.services


@pytest.fixture
def client(app, test_user_id):
    """Client acting as the primary test user."""
    c = TestClient(app, raise_server_exceptions=False)
    c.headers[ACTOR_HEADER] = str(test_user_id)
    return c


@pytest.fixture
def anonymous_client(app):
    """Client sending no actor header."""
    return TestClient(app, raise_server_exceptions=False)
