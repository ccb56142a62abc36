"""App, settings and revision store fixtures."""
import base64

import pytest
from fastapi.testclient import TestClient

from redirectory.config.settings import Settings
from redirectory.database.local import DocumentStore
from redirectory.main import create_app
from redirectory.revisions.store import RevisionStore
from tests.fixtures.release_store import TEST_LOGIN, TEST_TOKEN

TEST_SIGNING_KEY = "test-signing-key"


def bearer(user: str = TEST_LOGIN, token: str = TEST_TOKEN) -> str:
    return "Bearer " + base64.b64encode(f"{user}:{token}".encode()).decode()


@pytest.fixture
def store_path(tmp_path) -> str:
    return str(tmp_path / "redirectory.db")


@pytest.fixture
def settings(store_path) -> Settings:
    return Settings(store_path=store_path, signing_key=TEST_SIGNING_KEY, log_level="DEBUG")


@pytest.fixture
def revision_store(store_path) -> RevisionStore:
    store = RevisionStore(DocumentStore(store_path))
    store.load()
    return store


@pytest.fixture
def app(settings, release_store):
    return create_app(settings=settings, release_client_factory=release_store.client)


@pytest.fixture
def client(app) -> TestClient:
    with TestClient(app, follow_redirects=False) as test_client:
        test_client.headers["Authorization"] = bearer()
        yield test_client
