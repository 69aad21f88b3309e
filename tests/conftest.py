"""Shared pytest fixtures: an in-memory MongoDB and a patched client factory."""

import mongomock
import pytest
from fastapi.testclient import TestClient
from pymongo.errors import ServerSelectionTimeoutError

import cluster_manager
from app import app
from config import Settings, get_settings

TEST_URI = "mongodb://localhost:27017/testdb"


class RecordingClient:
    """Stands in for ``MongoClient``: serves mongomock data and counts closes."""

    def __init__(self, backend, uri, fail_with=None, **kwargs):
        self._backend = backend
        self._fail_with = fail_with
        self.uri = uri
        self.kwargs = kwargs
        self.close_calls = 0

    def server_info(self):
        if self._fail_with is not None:
            raise self._fail_with
        return {"version": "7.0.0", "ok": 1.0}

    def __getitem__(self, name):
        return self._backend[name]

    def close(self):
        self.close_calls += 1


@pytest.fixture
def backend():
    return mongomock.MongoClient()


@pytest.fixture
def opened_clients():
    return []


@pytest.fixture
def fake_mongo(monkeypatch, backend, opened_clients):
    """Route every ``MongoClient(...)`` the service creates to mongomock."""

    def factory(uri, **kwargs):
        client = RecordingClient(backend, uri, **kwargs)
        opened_clients.append(client)
        return client

    monkeypatch.setattr(cluster_manager, "MongoClient", factory)
    return backend


@pytest.fixture
def unreachable_mongo(monkeypatch, backend, opened_clients):
    """Every client fails its connection check."""

    def factory(uri, **kwargs):
        client = RecordingClient(
            backend,
            uri,
            fail_with=ServerSelectionTimeoutError("localhost:27017: connection refused"),
            **kwargs,
        )
        opened_clients.append(client)
        return client

    monkeypatch.setattr(cluster_manager, "MongoClient", factory)
    return backend


def _test_client(settings: Settings):
    app.dependency_overrides[get_settings] = lambda: settings
    return TestClient(app)


@pytest.fixture
def http():
    yield _test_client(Settings(environment="development"))
    app.dependency_overrides.clear()


@pytest.fixture
def production_http():
    yield _test_client(Settings(environment="production"))
    app.dependency_overrides.clear()
