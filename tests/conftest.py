import os
from typing import Optional

# keep the app on the in-process draft store unless a test wires Redis explicitly
os.environ.setdefault("DRAFT_STORE_BACKEND", "memory")

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient

from cinebook.auth.deps import get_cinema_api, get_optional_token
from cinebook.services.draft_store import InMemoryDraftStore, get_draft_store
from cinema_stub import CinemaApiStub


@pytest.fixture
def cinema_api():
    return CinemaApiStub()


@pytest.fixture
async def api_client(cinema_api):
    async with cinema_api.client(token="t0k") as api:
        yield api


@pytest.fixture
def draft_store():
    return InMemoryDraftStore(ttl=60)


@pytest.fixture
def client(cinema_api, draft_store):
    from cinebook.main import app

    async def _api(token: Optional[str] = Depends(get_optional_token)):
        async with cinema_api.client(token) as api:
            yield api

    app.dependency_overrides[get_cinema_api] = _api
    app.dependency_overrides[get_draft_store] = lambda: draft_store
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
