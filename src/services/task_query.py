"""Task query service - filtered listings and aggregate counts."""

from typing import Optional, Union

from pydantic import ValidationError

from src.models.agent_task import (
    SourceDashboard,
    TaskFilters,
    TaskOrdering,
    TaskPriority,
    TaskStats,
    TaskStatus,
    TaskType,
    AgentTask,
    enum_values,
)
from src.services.task_store import TaskStore
from src.utils.config import TaskQueueConfig
from src.utils.errors import TaskValidationError
from src.utils.logging import get_structured_logger, get_correlation_id

logger = get_structured_logger(__name__)

_ENUM_FIELDS = {
    "status": TaskStatus,
    "type": TaskType,
    "priority": TaskPriority,
    "source_dashboard": SourceDashboard,
}


def build_filters(raw: Union[TaskFilters, dict, None]) -> TaskFilters:
    """Turn caller-supplied filters into TaskFilters, reporting bad values as TaskValidationError."""
    if isinstance(raw, TaskFilters):
        return raw
    raw = {key: value for key, value in (raw or {}).items() if value not in (None, "")}
    try:
        return TaskFilters(**raw)
    except ValidationError as e:
        first = e.errors()[0]
        field = str(first["loc"][0]) if first.get("loc") else None
        if field in _ENUM_FIELDS:
            allowed = enum_values(_ENUM_FIELDS[field])
            raise TaskValidationError(
                f"Invalid {field}. Must be one of: {', '.join(allowed)}",
                field=field,
                allowed=allowed
            ) from e
        raise TaskValidationError(f"Invalid {field}: {first['msg']}", field=field) from e


class TaskQueryService:
    """Read side of the task queue."""

    def __init__(self, store: TaskStore):
        self.store = store

    async def list_tasks(self, filters: Union[TaskFilters, dict, None] = None) -> list[AgentTask]:
        """Tasks matching all filters, most urgent first, newest first within a priority."""
        filters = build_filters(filters)
        tasks = await self.store.query(filters, ordering=TaskOrdering.NEWEST_FIRST, limit=filters.limit)
        logger.debug(
            "Listed tasks",
            correlation_id=get_correlation_id(),
            count=len(tasks),
            filters=filters.model_dump(mode="json", exclude_none=True)
        )
        return tasks

    async def get_stats(self) -> TaskStats:
        return TaskStats(
            total=await self.store.count(),
            pending=await self.store.count([TaskStatus.PENDING]),
            in_progress=await self.store.count([TaskStatus.CLAIMED, TaskStatus.IN_PROGRESS]),
            done=await self.store.count([TaskStatus.DONE]),
            failed=await self.store.count([TaskStatus.FAILED]),
        )

    async def list_agent_tasks(
        self,
        agent_id: str,
        status: Union[None, str, list] = None
    ) -> list[AgentTask]:
        """Tasks assigned to one agent, in listing order."""
        filters = build_filters({
            "assigned_to": agent_id,
            "status": status,
            "limit": TaskQueueConfig.AGENT_TASK_LIST_LIMIT,
        })
        return await self.store.query(filters, ordering=TaskOrdering.NEWEST_FIRST, limit=filters.limit)
