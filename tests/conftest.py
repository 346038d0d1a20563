"""
Pytest fixtures for the hierarchy engine and the web API.
"""

import pytest
from fastapi.testclient import TestClient

from treenode.services.hierarchy import HierarchyEngine
from treenode.services.persistence import NodeStore
from treenode.web.app import app, get_store


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "tree.db")


@pytest.fixture
def store(db_path):
    store = NodeStore(db_path)
    yield store
    store.close()


@pytest.fixture
def engine(store):
    return HierarchyEngine(store)


@pytest.fixture
def client(db_path):
    """TestClient whose requests each get their own store on the temp database."""
    def override_store():
        store = NodeStore(db_path)
        try:
            yield store
        finally:
            store.close()

    app.dependency_overrides[get_store] = override_store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()

