from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from mytime_tracker.app.memory import InMemoryTrackerStorage
from mytime_tracker.app.settings import Settings
from mytime_tracker.main import create_app


@pytest.fixture
def settings() -> Settings:
    return Settings(database_url="", timezone="UTC", auto_migrate=True)


@pytest.fixture
def storage() -> InMemoryTrackerStorage:
    store = InMemoryTrackerStorage(timezone="UTC")
    store.add_task(1, "OPEN")
    store.add_task(2, "IN_PROGRESS")
    store.add_task(3, "CLOSED")
    return store


@pytest.fixture
def client(storage: InMemoryTrackerStorage, settings: Settings) -> Iterator[TestClient]:
    app = create_app(storage=storage, settings_override=settings)
    with TestClient(app) as test_client:
        yield test_client
