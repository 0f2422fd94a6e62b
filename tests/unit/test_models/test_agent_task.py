"""Tests for AgentTask model."""

import pytest
from datetime import datetime, timezone
from pydantic import ValidationError
from src.models.agent_task import (
    AgentTask,
    PRIORITY_RANK,
    TRANSITIONS,
    TaskAction,
    TaskFilters,
    TaskPriority,
    TaskStatus,
    TaskType,
    enum_values,
)
from src.utils.config import TaskQueueConfig

CREATED = datetime(2024, 12, 9, 12, 0, tzinfo=timezone.utc)


@pytest.mark.unit
def test_agent_task_valid():
    """Test valid agent task creation with defaults."""
    task = AgentTask(
        id="task_01ARZ3NDEKTSV4RRFFQ69G5FAV",
        type="qa_test",
        description="Run smoke tests",
        created_at=CREATED
    )

    assert task.type == TaskType.QA_TEST
    assert task.status == TaskStatus.PENDING
    assert task.priority == TaskPriority.NORMAL
    assert task.created_by == "dashboard"
    assert task.assigned_to is None
    assert not task.is_terminal


@pytest.mark.unit
def test_agent_task_rejects_unknown_type():
    """Test that type must be a known task type."""
    with pytest.raises(ValidationError):
        AgentTask(id="task_1", type="bogus", description="x", created_at=CREATED)


@pytest.mark.unit
def test_agent_task_description_required():
    """Test that description is required and non-empty."""
    with pytest.raises(ValidationError):
        AgentTask(id="task_1", type="qa_test", description="", created_at=CREATED)


@pytest.mark.unit
def test_priority_rank_order():
    """Test urgent ranks ahead of high, normal and low."""
    assert PRIORITY_RANK[TaskPriority.URGENT] < PRIORITY_RANK[TaskPriority.HIGH]
    assert PRIORITY_RANK[TaskPriority.HIGH] < PRIORITY_RANK[TaskPriority.NORMAL]
    assert PRIORITY_RANK[TaskPriority.NORMAL] < PRIORITY_RANK[TaskPriority.LOW]


@pytest.mark.unit
def test_to_row_includes_priority_rank():
    """Test store rows carry the derived priority_rank column."""
    task = AgentTask(
        id="task_1", type="code_fix", description="Fix", priority="urgent", created_at=CREATED
    )
    row = task.to_row()

    assert row["priority_rank"] == 1
    assert row["priority"] == "urgent"
    assert row["type"] == "code_fix"
    assert row["created_at"].startswith("2024-12-09T12:00:00")


@pytest.mark.unit
def test_terminal_statuses():
    """Test done, failed and cancelled are terminal."""
    for status in (TaskStatus.DONE, TaskStatus.FAILED, TaskStatus.CANCELLED):
        task = AgentTask(id="task_1", type="qa_test", description="x", status=status, created_at=CREATED)
        assert task.is_terminal


@pytest.mark.unit
def test_transitions_table():
    """Test every action's allowed source statuses and target."""
    assert TRANSITIONS[TaskAction.CLAIM] == (frozenset({TaskStatus.PENDING}), TaskStatus.CLAIMED)
    assert TRANSITIONS[TaskAction.START] == (frozenset({TaskStatus.CLAIMED}), TaskStatus.IN_PROGRESS)
    assert TRANSITIONS[TaskAction.COMPLETE][0] == {TaskStatus.CLAIMED, TaskStatus.IN_PROGRESS}
    assert TRANSITIONS[TaskAction.FAIL][0] == {
        TaskStatus.PENDING, TaskStatus.CLAIMED, TaskStatus.IN_PROGRESS
    }
    assert TRANSITIONS[TaskAction.CANCEL][0] == {TaskStatus.PENDING, TaskStatus.CLAIMED}


@pytest.mark.unit
def test_no_transition_leaves_a_terminal_status():
    """Test terminal statuses never appear as a transition source."""
    terminal = {TaskStatus.DONE, TaskStatus.FAILED, TaskStatus.CANCELLED}
    for expected, _target in TRANSITIONS.values():
        assert not expected & terminal


@pytest.mark.unit
def test_enum_values_in_declaration_order():
    assert enum_values(TaskPriority) == ["low", "normal", "high", "urgent"]


@pytest.mark.unit
def test_filters_split_comma_separated_status():
    """Test status filter accepts a comma-separated string."""
    filters = TaskFilters(status="pending,claimed")
    assert filters.status == [TaskStatus.PENDING, TaskStatus.CLAIMED]


@pytest.mark.unit
def test_filters_single_status_enum():
    filters = TaskFilters(status=TaskStatus.DONE)
    assert filters.status == [TaskStatus.DONE]


@pytest.mark.unit
def test_filters_limit_capped():
    """Test limit above the maximum is capped."""
    filters = TaskFilters(limit=TaskQueueConfig.TASK_LIST_MAX_LIMIT + 1000)
    assert filters.limit == TaskQueueConfig.TASK_LIST_MAX_LIMIT


@pytest.mark.unit
def test_filters_limit_must_be_positive():
    with pytest.raises(ValidationError):
        TaskFilters(limit=0)


@pytest.mark.unit
def test_filters_reject_unknown_status():
    with pytest.raises(ValidationError):
        TaskFilters(status="pending,sleeping")
