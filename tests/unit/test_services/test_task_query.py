"""Tests for the task query service."""

import pytest
from datetime import datetime, timedelta, timezone

from src.models.agent_task import TaskFilters, TaskPriority, TaskStatus, TaskType
from src.services.task_query import build_filters
from src.utils.config import TaskQueueConfig
from src.utils.errors import TaskValidationError
from tests.utils.factories import create_task

NOON = datetime(2024, 12, 9, 12, 0, tzinfo=timezone.utc)


def _seed(store, *tasks):
    for task in tasks:
        store.tasks[task.id] = task


@pytest.mark.unit
def test_build_filters_drops_empty_values():
    filters = build_filters({"status": "", "assigned_to": None, "type": "qa_test"})
    assert filters.status is None
    assert filters.assigned_to is None
    assert filters.type == TaskType.QA_TEST
    assert filters.limit == TaskQueueConfig.TASK_LIST_DEFAULT_LIMIT


@pytest.mark.unit
def test_build_filters_passes_through_instance():
    filters = TaskFilters(limit=5)
    assert build_filters(filters) is filters


@pytest.mark.unit
@pytest.mark.parametrize("field,value", [
    ("status", "pending,sleeping"),
    ("type", "bogus"),
    ("priority", "critical"),
    ("source_dashboard", "myspace"),
])
def test_build_filters_invalid_enum(field, value):
    """Test unknown enum filter values are rejected with the allowed list."""
    with pytest.raises(TaskValidationError) as exc:
        build_filters({field: value})
    assert exc.value.field == field
    assert exc.value.allowed


@pytest.mark.unit
def test_build_filters_invalid_limit():
    with pytest.raises(TaskValidationError) as exc:
        build_filters({"limit": 0})
    assert exc.value.field == "limit"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_tasks_priority_then_newest(query_service, task_store):
    """Scenario: urgent first, then newest first within a priority."""
    _seed(
        task_store,
        create_task("task_low", priority=TaskPriority.LOW, created_at=NOON),
        create_task("task_urgent", priority=TaskPriority.URGENT, created_at=NOON - timedelta(hours=5)),
        create_task("task_normal_old", created_at=NOON - timedelta(hours=2)),
        create_task("task_normal_new", created_at=NOON - timedelta(hours=1)),
    )

    tasks = await query_service.list_tasks()

    assert [t.id for t in tasks] == ["task_urgent", "task_normal_new", "task_normal_old", "task_low"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_tasks_filters_are_conjunctive(query_service, task_store):
    _seed(
        task_store,
        create_task("task_a", status=TaskStatus.CLAIMED, assigned_to="bot-1"),
        create_task("task_b", status=TaskStatus.CLAIMED, assigned_to="bot-2"),
        create_task("task_c", status=TaskStatus.DONE, assigned_to="bot-1"),
        create_task("task_d", status=TaskStatus.PENDING),
    )

    tasks = await query_service.list_tasks({"status": "claimed,done", "assigned_to": "bot-1"})

    assert sorted(t.id for t in tasks) == ["task_a", "task_c"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_tasks_by_source(query_service, task_store):
    _seed(
        task_store,
        create_task("task_a", source_agent="planner", source_dashboard="telegram"),
        create_task("task_b", source_agent="planner", source_dashboard="cli"),
    )

    tasks = await query_service.list_tasks({"source_agent": "planner", "source_dashboard": "cli"})
    assert [t.id for t in tasks] == ["task_b"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_tasks_limit(query_service, task_store):
    _seed(task_store, *[create_task(f"task_{i}", created_at=NOON + timedelta(minutes=i)) for i in range(10)])

    tasks = await query_service.list_tasks({"limit": "3"})

    assert [t.id for t in tasks] == ["task_9", "task_8", "task_7"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_tasks_invalid_filter_rejected(query_service):
    with pytest.raises(TaskValidationError):
        await query_service.list_tasks({"priority": "critical"})


@pytest.mark.unit
@pytest.mark.asyncio
async def test_get_stats(query_service, task_store):
    """Test in_progress counts claimed plus in-progress, cancelled only in total."""
    _seed(
        task_store,
        create_task("task_1"),
        create_task("task_2"),
        create_task("task_3", status=TaskStatus.CLAIMED),
        create_task("task_4", status=TaskStatus.IN_PROGRESS),
        create_task("task_5", status=TaskStatus.DONE),
        create_task("task_6", status=TaskStatus.FAILED),
        create_task("task_7", status=TaskStatus.CANCELLED),
    )

    stats = await query_service.get_stats()

    assert stats.total == 7
    assert stats.pending == 2
    assert stats.in_progress == 2
    assert stats.done == 1
    assert stats.failed == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_get_stats_empty(query_service):
    stats = await query_service.get_stats()
    assert stats.model_dump() == {"total": 0, "pending": 0, "in_progress": 0, "done": 0, "failed": 0}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_agent_tasks(query_service, task_store):
    _seed(
        task_store,
        create_task("task_a", status=TaskStatus.CLAIMED, assigned_to="bot-1", created_at=NOON),
        create_task("task_b", status=TaskStatus.DONE, assigned_to="bot-1", created_at=NOON + timedelta(hours=1)),
        create_task("task_c", status=TaskStatus.CLAIMED, assigned_to="bot-2"),
    )

    assert [t.id for t in await query_service.list_agent_tasks("bot-1")] == ["task_b", "task_a"]
    assert [t.id for t in await query_service.list_agent_tasks("bot-1", status="claimed")] == ["task_a"]
    assert await query_service.list_agent_tasks("nobody") == []
