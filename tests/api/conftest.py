"""Fixtures for the HTTP layer: an app over an in-memory store."""

import pytest
from fastapi.testclient import TestClient

from fleet_api import create_app
from fleet_config import get_active_config
from fleet_kernel.stores.memory import InMemoryPaymentStore

WEBHOOK_SECRET = "test-webhook-secret"


@pytest.fixture
def fleet_config():
    return get_active_config(environ={"COMMBANK_WEBHOOK_SECRET": WEBHOOK_SECRET})


@pytest.fixture
def app(fleet_config, clock):
    return create_app(fleet_config, store=InMemoryPaymentStore(), clock=clock)


@pytest.fixture
def api_ledger(app):
    return app.state.ledger


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
