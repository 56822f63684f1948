"""
Integration test configuration: the real app with the database, object store
and archive fetcher dependencies pointed at test doubles.
"""
import pytest
from fastapi.testclient import TestClient

from guestlens.api.deps import get_archive_fetcher
from guestlens.app.main import app
from guestlens.core.security import create_access_token
from guestlens.db.base import get_db
from guestlens.services.storage.s3 import get_object_store
from tests.conftest import key_from_signed_url


@pytest.fixture
def client(db_session, store):
    """FastAPI test client with dependency overrides."""
    def override_get_db():
        yield db_session

    def override_fetcher():
        async def fetch(entry):
            return store.objects[key_from_signed_url(entry.url)].data
        return fetch

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_object_store] = lambda: store
    app.dependency_overrides[get_archive_fetcher] = override_fetcher
    yield TestClient(app, follow_redirects=False)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def factory(user):
        token = create_access_token({"sub": str(user.id)})
        return {"Authorization": f"Bearer {token}"}
    return factory
