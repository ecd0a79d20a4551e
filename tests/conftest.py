from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from task_api.config import Settings
from task_api.database import TaskStore
from task_api.main import create_app


@pytest.fixture()
def database():
    """In-process Motor-compatible database; each test gets a fresh one."""
    return AsyncMongoMockClient()["task_manager_test"]


@pytest.fixture()
def store(database) -> TaskStore:
    return TaskStore(database)


@pytest.fixture()
def settings() -> Settings:
    return Settings(database_name="task_manager_test", default_page_size=20, max_page_size=100)


@pytest.fixture()
def client(settings: Settings, database) -> TestClient:
    return TestClient(create_app(settings, database=database))
