"""Shared pytest fixtures and configuration."""

import os
import pytest
from unittest.mock import MagicMock, patch
from freezegun import freeze_time

# Set test environment variables
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-key")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from src.services.activity_logger import ActivityLogger
from src.services.agent_registry import AgentRegistry
from src.services.task_lifecycle import TaskLifecycleManager
from src.services.task_query import TaskQueryService
from tests.utils.fake_store import InMemoryTaskStore


@pytest.fixture
def task_store():
    """Fresh in-memory task store."""
    return InMemoryTaskStore()


@pytest.fixture
def activity_logger(task_store):
    return ActivityLogger(task_store)


@pytest.fixture
def lifecycle(task_store, activity_logger):
    """Task lifecycle manager over the in-memory store."""
    return TaskLifecycleManager(task_store, activity_logger, xp_per_task=10)


@pytest.fixture
def query_service(task_store):
    return TaskQueryService(task_store)


@pytest.fixture
def registry(task_store):
    return AgentRegistry(task_store)


@pytest.fixture
def patched_store(task_store):
    """Route every API handler to the in-memory store."""
    modules = [
        "api.agent_tasks.index",
        "api.agent_tasks.detail",
        "api.agent_tasks.next",
        "api.agents.index",
        "api.agents.heartbeat",
        "api.activity",
        "api.health",
    ]
    patchers = [patch(f"{module}.get_task_store", return_value=task_store) for module in modules]
    for patcher in patchers:
        patcher.start()
    yield task_store
    for patcher in patchers:
        patcher.stop()


@pytest.fixture
def mock_supabase_client():
    """
    Mock Supabase client whose query builder methods chain.

    Set ``client.query.execute.return_value`` to control the result.
    """
    client = MagicMock()
    query = MagicMock()
    for method in ("select", "insert", "update", "upsert", "eq", "in_", "order", "limit"):
        getattr(query, method).return_value = query
    client.table.return_value = query
    client.query = query
    return client


@pytest.fixture
def freeze_time_fixture():
    """Fixture for freezing time in tests."""
    with freeze_time("2024-12-09 12:00:00") as frozen_time:
        yield frozen_time

