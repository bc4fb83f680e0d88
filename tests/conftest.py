"""Shared test fixtures."""

import sys

import pytest

# Ensure src is in path
sys.path.insert(0, "src")

from datakit import ClientSettings, Dispatcher, LocalTransport, MemoryCache, Query
from datakit.execution import reset_default_dispatcher

PEOPLE = [
    {"_id": "p1", "name": "Ada", "age": 36, "city": "NYC", "tags": ["math", "code"]},
    {"_id": "p2", "name": "Grace", "age": 45, "city": "LA", "tags": ["navy", "code"]},
    {"_id": "p3", "name": "Alan", "age": 41, "city": "London"},
    {"_id": "p4", "name": "Barbara", "age": 17, "city": "NYC", "email": "barbara@example.com"},
]


@pytest.fixture(autouse=True)
def _no_default_dispatcher():
    """Each test starts without a process default dispatcher."""
    reset_default_dispatcher()
    yield
    reset_default_dispatcher()


@pytest.fixture
def settings():
    """Settings that never read the environment for the fields tests rely on."""
    return ClientSettings(endpoint="http://datakit.test", secret="test-secret", timeout=5.0)


@pytest.fixture
def transport():
    """LocalTransport seeded with a small Person collection."""
    return LocalTransport({"Person": PEOPLE})


@pytest.fixture
def dispatcher(transport, settings):
    """Dispatcher over the seeded LocalTransport with a fresh cache."""
    return Dispatcher(transport, cache=MemoryCache(16), settings=settings)


@pytest.fixture
def people(dispatcher) -> Query:
    """Fresh Person query bound to the local dispatcher."""
    return dispatcher.query("Person")
