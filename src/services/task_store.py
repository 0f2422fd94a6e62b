"""Task store adapter - the narrow persistence interface the task queue runs on.

``TaskStore`` is what the lifecycle manager, query service, registry and
activity logger consume. ``SupabaseTaskStore`` implements it on top of the
Supabase (PostgREST) client.

The one operation that carries the concurrency model is
``conditional_update``: it must apply the write only if the row's current
status is in the expected set, as a single statement. For Supabase this is
``UPDATE agent_tasks SET ... WHERE id = ? AND status IN (...)``; the number
of returned rows says whether the write applied.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Optional

import httpx
from postgrest.exceptions import APIError
from supabase import Client

from src.models.activity import ActivityEntry
from src.models.agent import Agent
from src.models.agent_task import AgentTask, TaskFilters, TaskOrdering, TaskStatus
from src.services.supabase_client import SupabaseClient
from src.utils.config import TaskQueueConfig
from src.utils.errors import (
    AgentTasksError,
    ActivityLogError,
    DuplicateTaskError,
    StoreError,
    StoreUnavailableError,
)
from src.utils.logging import get_structured_logger, log_timing

logger = get_structured_logger(__name__)

UNIQUE_VIOLATION = "23505"


class TaskStore(ABC):
    """Persistence interface for tasks, agents and the activity log."""

    # Tasks

    @abstractmethod
    async def insert(self, task: AgentTask) -> AgentTask:
        """Persist a new task. Raises DuplicateTaskError if the id exists."""

    @abstractmethod
    async def conditional_update(
        self,
        task_id: str,
        expected_statuses: Iterable[TaskStatus],
        fields: dict[str, Any]
    ) -> bool:
        """Atomically update a task only if its status is in expected_statuses.

        Returns True if the row was updated.
        """

    @abstractmethod
    async def get_by_id(self, task_id: str) -> Optional[AgentTask]:
        ...

    @abstractmethod
    async def query(
        self,
        filters: TaskFilters,
        ordering: TaskOrdering = TaskOrdering.NEWEST_FIRST,
        limit: Optional[int] = None
    ) -> list[AgentTask]:
        """Tasks matching filters, by priority rank then created_at in the given direction."""

    @abstractmethod
    async def count(self, statuses: Optional[Iterable[TaskStatus]] = None) -> int:
        ...

    # Agents

    @abstractmethod
    async def get_agent_by_id(self, agent_id: str) -> Optional[Agent]:
        ...

    @abstractmethod
    async def upsert_agent(self, agent: Agent) -> Agent:
        ...

    @abstractmethod
    async def update_agent_fields(self, agent_id: str, fields: dict[str, Any]) -> bool:
        ...

    @abstractmethod
    async def list_agents(self) -> list[Agent]:
        ...

    # Activity log

    @abstractmethod
    async def insert_activity(self, entry: ActivityEntry) -> ActivityEntry:
        ...

    @abstractmethod
    async def list_activity(
        self,
        limit: int,
        action: Optional[str] = None,
        actor: Optional[str] = None
    ) -> list[ActivityEntry]:
        ...


def serialize_fields(fields: dict[str, Any]) -> dict[str, Any]:
    """Convert enums and datetimes to their wire representation."""
    row = {}
    for key, value in fields.items():
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, datetime):
            value = value.isoformat()
        row[key] = value
    return row


def translate_error(exc: Exception, context: str) -> AgentTasksError:
    """Map client/transport exceptions onto the store error taxonomy."""
    if isinstance(exc, AgentTasksError):
        return exc
    if isinstance(exc, APIError):
        if exc.code == UNIQUE_VIOLATION:
            return DuplicateTaskError(f"{context}: {exc.message}")
        return StoreError(f"{context}: {exc.message}")
    if isinstance(exc, (httpx.TransportError, ConnectionError, TimeoutError)):
        return StoreUnavailableError(f"{context}: {exc}")
    return StoreError(f"{context}: {exc}")


class SupabaseTaskStore(TaskStore):
    """TaskStore backed by Supabase tables."""

    def __init__(
        self,
        client: Optional[Client] = None,
        tasks_table: str = TaskQueueConfig.AGENT_TASKS_TABLE,
        agents_table: str = TaskQueueConfig.AGENTS_TABLE,
        activity_table: str = TaskQueueConfig.ACTIVITY_LOG_TABLE
    ):
        self._client = client
        self.tasks_table = tasks_table
        self.agents_table = agents_table
        self.activity_table = activity_table

    async def insert(self, task: AgentTask) -> AgentTask:
        async with SupabaseClient(self._client) as client:
            try:
                with log_timing("insert_task", logger=logger, task_id=task.id):
                    result = client.table(self.tasks_table).insert(task.to_row()).execute()
            except Exception as e:
                raise translate_error(e, f"Failed to insert task {task.id}") from e

        if not result.data:
            raise StoreError(f"Failed to insert task {task.id}: no data returned")
        return AgentTask.model_validate(result.data[0])

    async def conditional_update(
        self,
        task_id: str,
        expected_statuses: Iterable[TaskStatus],
        fields: dict[str, Any]
    ) -> bool:
        expected = [TaskStatus(s).value for s in expected_statuses]
        async with SupabaseClient(self._client) as client:
            try:
                with log_timing("conditional_update_task", logger=logger, task_id=task_id):
                    result = (
                        client.table(self.tasks_table)
                        .update(serialize_fields(fields))
                        .eq("id", task_id)
                        .in_("status", expected)
                        .execute()
                    )
            except Exception as e:
                raise translate_error(e, f"Failed to update task {task_id}") from e

        return bool(result.data)

    async def get_by_id(self, task_id: str) -> Optional[AgentTask]:
        async with SupabaseClient(self._client) as client:
            try:
                result = client.table(self.tasks_table).select("*").eq("id", task_id).limit(1).execute()
            except Exception as e:
                raise translate_error(e, f"Failed to get task {task_id}") from e

        return AgentTask.model_validate(result.data[0]) if result.data else None

    async def query(
        self,
        filters: TaskFilters,
        ordering: TaskOrdering = TaskOrdering.NEWEST_FIRST,
        limit: Optional[int] = None
    ) -> list[AgentTask]:
        async with SupabaseClient(self._client) as client:
            try:
                q = client.table(self.tasks_table).select("*")
                if filters.status:
                    statuses = [s.value for s in filters.status]
                    q = q.eq("status", statuses[0]) if len(statuses) == 1 else q.in_("status", statuses)
                for column in ("assigned_to", "source_agent"):
                    value = getattr(filters, column)
                    if value:
                        q = q.eq(column, value)
                for column in ("type", "priority", "source_dashboard"):
                    value = getattr(filters, column)
                    if value:
                        q = q.eq(column, value.value)
                q = (
                    q.order("priority_rank")
                    .order("created_at", desc=ordering == TaskOrdering.NEWEST_FIRST)
                    .limit(limit or filters.limit)
                )
                with log_timing("query_tasks", logger=logger, ordering=ordering.value):
                    result = q.execute()
            except Exception as e:
                raise translate_error(e, "Failed to query tasks") from e

        return [AgentTask.model_validate(row) for row in (result.data or [])]

    async def count(self, statuses: Optional[Iterable[TaskStatus]] = None) -> int:
        async with SupabaseClient(self._client) as client:
            try:
                q = client.table(self.tasks_table).select("id", count="exact", head=True)
                if statuses is not None:
                    q = q.in_("status", [TaskStatus(s).value for s in statuses])
                result = q.execute()
            except Exception as e:
                raise translate_error(e, "Failed to count tasks") from e

        return result.count or 0

    async def get_agent_by_id(self, agent_id: str) -> Optional[Agent]:
        async with SupabaseClient(self._client) as client:
            try:
                result = client.table(self.agents_table).select("*").eq("id", agent_id).limit(1).execute()
            except Exception as e:
                raise translate_error(e, f"Failed to get agent {agent_id}") from e

        return Agent.model_validate(result.data[0]) if result.data else None

    async def upsert_agent(self, agent: Agent) -> Agent:
        async with SupabaseClient(self._client) as client:
            try:
                result = (
                    client.table(self.agents_table)
                    .upsert(agent.model_dump(mode="json"), on_conflict="id")
                    .execute()
                )
            except Exception as e:
                raise translate_error(e, f"Failed to register agent {agent.id}") from e

        if not result.data:
            raise StoreError(f"Failed to register agent {agent.id}: no data returned")
        return Agent.model_validate(result.data[0])

    async def update_agent_fields(self, agent_id: str, fields: dict[str, Any]) -> bool:
        async with SupabaseClient(self._client) as client:
            try:
                result = (
                    client.table(self.agents_table)
                    .update(serialize_fields(fields))
                    .eq("id", agent_id)
                    .execute()
                )
            except Exception as e:
                raise translate_error(e, f"Failed to update agent {agent_id}") from e

        return bool(result.data)

    async def list_agents(self) -> list[Agent]:
        async with SupabaseClient(self._client) as client:
            try:
                result = client.table(self.agents_table).select("*").order("name").execute()
            except Exception as e:
                raise translate_error(e, "Failed to list agents") from e

        return [Agent.model_validate(row) for row in (result.data or [])]

    async def insert_activity(self, entry: ActivityEntry) -> ActivityEntry:
        row = entry.model_dump(mode="json", exclude={"id"})
        async with SupabaseClient(self._client) as client:
            try:
                result = client.table(self.activity_table).insert(row).execute()
            except Exception as e:
                raise ActivityLogError(f"Failed to log activity {entry.action}: {e}") from e

        return ActivityEntry.model_validate(result.data[0]) if result.data else entry

    async def list_activity(
        self,
        limit: int,
        action: Optional[str] = None,
        actor: Optional[str] = None
    ) -> list[ActivityEntry]:
        async with SupabaseClient(self._client) as client:
            try:
                q = client.table(self.activity_table).select("*")
                if action:
                    q = q.eq("action", action)
                if actor:
                    q = q.eq("actor", actor)
                result = q.order("created_at", desc=True).limit(limit).execute()
            except Exception as e:
                raise translate_error(e, "Failed to read activity log") from e

        return [ActivityEntry.model_validate(row) for row in (result.data or [])]


_store: Optional[TaskStore] = None


def get_task_store() -> TaskStore:
    """Get or create the global store instance."""
    global _store
    if _store is None:
        _store = SupabaseTaskStore()
    return _store
