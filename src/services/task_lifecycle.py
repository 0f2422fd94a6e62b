"""Task lifecycle manager - create, claim, start, complete, fail and cancel agent tasks.

Every transition is a single conditional update against the store
(``WHERE id = ? AND status IN (...)``). There is no in-process locking:
when several agents race for the same task exactly one update applies and
the others get ``False``, which is a normal outcome rather than an error.

Completing a task awards XP to the assigned agent. Because a task can only
reach ``done`` once, the award cannot be applied twice for the same task
even though the agent row update itself is unguarded.
"""

import json
from datetime import datetime, timezone
from typing import Any, Optional, Union

from pydantic import ValidationError
from ulid import ULID

from src.models.activity import ActivityAction
from src.models.agent_task import (
    AgentTask,
    SourceDashboard,
    TargetType,
    TaskAction,
    TaskFilters,
    TaskOrdering,
    TaskPriority,
    TaskStatus,
    TaskType,
    TRANSITIONS,
    enum_values,
)
from src.services.activity_logger import ActivityLogger
from src.services.gamification import AgentProgress, CompletionAward, apply_task_completion
from src.services.task_store import TaskStore
from src.utils.config import TaskQueueConfig
from src.utils.errors import TaskValidationError
from src.utils.logging import get_structured_logger, get_correlation_id, sanitize_message_text

logger = get_structured_logger(__name__)


def generate_task_id() -> str:
    """Time-sortable task ID: 48-bit timestamp + 80 random bits."""
    return f"task_{ULID()}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require_enum(data: dict, field: str, enum_cls) -> Optional[Any]:
    value = data.get(field)
    if value is None or value == "":
        return None
    try:
        return enum_cls(value)
    except ValueError:
        allowed = enum_values(enum_cls)
        raise TaskValidationError(
            f"Invalid {field}. Must be one of: {', '.join(allowed)}",
            field=field,
            allowed=allowed
        )


def _require_text(value: Any, field: str, action: str) -> str:
    """Non-empty text; structured values are JSON-encoded like payloads."""
    text = _to_blob(value)
    if text is None or not text.strip():
        raise TaskValidationError(f"{field} is required for {action} action", field=field)
    return text


def _to_blob(value: Any) -> Optional[str]:
    """Opaque payload/metadata: strings pass through, anything else is JSON-encoded."""
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8")
    if isinstance(value, str):
        return value
    return json.dumps(value)


def _optional_label(value: Any, field: str) -> Optional[str]:
    """Opaque ids and caller labels: numbers are accepted and kept as text."""
    if value is None or value == "":
        return None
    if isinstance(value, (dict, list, tuple, bool)):
        raise TaskValidationError(f"Invalid {field}: must be a string or number", field=field)
    return str(value)


def _parse_due_at(value: Union[None, str, datetime]) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        raise TaskValidationError("Invalid due_at. Must be an ISO-8601 timestamp", field="due_at")


class TaskLifecycleManager:
    """State machine over the agent_tasks table."""

    def __init__(
        self,
        store: TaskStore,
        activity_logger: Optional[ActivityLogger] = None,
        xp_per_task: int = TaskQueueConfig.XP_PER_TASK
    ):
        self.store = store
        self.activity = activity_logger or ActivityLogger(store)
        self.xp_per_task = xp_per_task

    async def create(self, data: dict) -> AgentTask:
        """
        Validate and insert a new pending task.

        Raises TaskValidationError before touching the store if type or
        description is missing or any enum field holds an unknown value.
        """
        if not data.get("type") or not data.get("description"):
            raise TaskValidationError(
                "Missing required fields: type and description are required",
                field="type" if not data.get("type") else "description"
            )

        task_type = _require_enum(data, "type", TaskType)
        target_type = _require_enum(data, "target_type", TargetType)
        priority = _require_enum(data, "priority", TaskPriority) or TaskPriority.NORMAL
        source_dashboard = _require_enum(data, "source_dashboard", SourceDashboard)

        try:
            task = AgentTask(
                id=generate_task_id(),
                type=task_type,
                target_id=_optional_label(data.get("target_id"), "target_id"),
                target_type=target_type,
                description=_to_blob(data["description"]),
                payload=_to_blob(data.get("payload")),
                status=TaskStatus.PENDING,
                assigned_to=_optional_label(data.get("assigned_to"), "assigned_to"),
                source_agent=_optional_label(data.get("source_agent"), "source_agent"),
                source_dashboard=source_dashboard,
                priority=priority,
                created_by=(
                    _optional_label(data.get("created_by"), "created_by")
                    or TaskQueueConfig.DEFAULT_CREATED_BY
                ),
                created_at=_utcnow(),
                due_at=_parse_due_at(data.get("due_at")),
                metadata=_to_blob(data.get("metadata")),
            )
        except ValidationError as e:
            first = e.errors()[0]
            field = str(first["loc"][0]) if first.get("loc") else None
            raise TaskValidationError(f"Invalid {field}: {first['msg']}", field=field) from e

        created = await self.store.insert(task)

        logger.info(
            "Task created",
            correlation_id=get_correlation_id(),
            task_id=created.id,
            task_type=created.type.value,
            priority=created.priority.value,
            assigned_to=created.assigned_to,
            description_preview=sanitize_message_text(created.description, max_length=100)
        )
        await self.activity.log(
            ActivityAction.TASK_CREATED,
            actor=created.created_by,
            details={
                "task_id": created.id,
                "task_type": created.type.value,
                "description": created.description[:100],
                "priority": created.priority.value,
                "source_dashboard": created.source_dashboard.value if created.source_dashboard else None,
            }
        )
        return created

    async def _transition(self, task_id: str, action: TaskAction, fields: dict[str, Any]) -> bool:
        expected, target = TRANSITIONS[action]
        applied = await self.store.conditional_update(
            task_id, expected, {"status": target, **fields}
        )
        logger.info(
            f"Task {action.value} {'applied' if applied else 'not applied'}",
            correlation_id=get_correlation_id(),
            task_id=task_id,
            action=action.value,
            applied=applied,
            expected_statuses=sorted(s.value for s in expected)
        )
        return applied

    async def claim(self, task_id: str, agent_name: str) -> bool:
        """Reserve a pending task for an agent. False if it is not pending (or missing)."""
        agent_name = _require_text(
            _optional_label(agent_name, "agent_name"), "agent_name", TaskAction.CLAIM.value
        )

        applied = await self._transition(
            task_id, TaskAction.CLAIM,
            {"assigned_to": agent_name, "claimed_at": _utcnow()}
        )
        if applied:
            await self.activity.log(
                ActivityAction.TASK_CLAIMED,
                actor=agent_name,
                details={"task_id": task_id, "agent": agent_name}
            )
        return applied

    async def start(self, task_id: str) -> bool:
        """Move a claimed task to in_progress."""
        applied = await self._transition(task_id, TaskAction.START, {"started_at": _utcnow()})
        if applied:
            task = await self.store.get_by_id(task_id)
            await self.activity.log(
                ActivityAction.TASK_STARTED,
                actor=task.assigned_to if task else None,
                details={"task_id": task_id}
            )
        return applied

    async def complete(self, task_id: str, result: str) -> bool:
        """Finish a claimed or in-progress task and award XP to its agent."""
        result = _require_text(result, "result", TaskAction.COMPLETE.value)
        completed_at = _utcnow()

        applied = await self._transition(
            task_id, TaskAction.COMPLETE,
            {"completed_at": completed_at, "result": result, "error": None}
        )
        if not applied:
            return False

        task = await self.store.get_by_id(task_id)
        agent_name = task.assigned_to if task else None
        if agent_name:
            await self._award_completion(agent_name, task_id, completed_at)

        await self.activity.log(
            ActivityAction.TASK_COMPLETED,
            actor=agent_name,
            details={
                "task_id": task_id,
                "task_type": task.type.value if task else None,
                "agent": agent_name,
            }
        )
        return True

    async def _award_completion(
        self,
        agent_id: str,
        task_id: str,
        completed_at: datetime
    ) -> Optional[CompletionAward]:
        """Apply the gamification engine to the agent and persist the result.

        The task is already done at this point; a failure here is logged
        and does not undo the completion.
        """
        correlation_id = get_correlation_id()
        try:
            agent = await self.store.get_agent_by_id(agent_id)
            if agent is None:
                logger.warning(
                    "Completed task assigned to unregistered agent; XP not awarded",
                    correlation_id=correlation_id,
                    task_id=task_id,
                    agent_id=agent_id
                )
                return None

            award = apply_task_completion(
                AgentProgress.from_agent(agent), completed_at, self.xp_per_task
            )
            await self.store.update_agent_fields(agent_id, award.progress.to_fields())
        except Exception as e:
            logger.error(
                "Failed to award XP for completed task",
                correlation_id=correlation_id,
                task_id=task_id,
                agent_id=agent_id,
                error=str(e),
                exc_info=True
            )
            return None

        logger.info(
            "XP awarded",
            correlation_id=correlation_id,
            task_id=task_id,
            agent_id=agent_id,
            xp_awarded=award.xp_awarded,
            xp=award.progress.xp,
            level=award.progress.level,
            current_streak=award.progress.current_streak,
            new_badges=award.new_badges,
            leveled_up=award.leveled_up
        )
        return award

    async def fail(self, task_id: str, error: str) -> bool:
        """Mark a pending, claimed or in-progress task as failed."""
        error = _require_text(error, "error", TaskAction.FAIL.value)

        applied = await self._transition(
            task_id, TaskAction.FAIL,
            {"completed_at": _utcnow(), "error": error, "result": None}
        )
        if applied:
            task = await self.store.get_by_id(task_id)
            await self.activity.log(
                ActivityAction.TASK_FAILED,
                actor=task.assigned_to if task else None,
                details={
                    "task_id": task_id,
                    "type": task.type.value if task else None,
                    "error": sanitize_message_text(error, max_length=200) or "",
                    "assigned_to": task.assigned_to if task else None,
                }
            )
        return applied

    async def cancel(self, task_id: str) -> bool:
        """Cancel a task that nobody has started yet."""
        applied = await self._transition(task_id, TaskAction.CANCEL, {"completed_at": _utcnow()})
        if applied:
            await self.activity.log(
                ActivityAction.TASK_CANCELLED,
                details={"task_id": task_id}
            )
        return applied

    async def apply_action(
        self,
        task_id: str,
        action: Union[str, TaskAction],
        agent_name: Optional[str] = None,
        result: Optional[str] = None,
        error: Optional[str] = None
    ) -> bool:
        """Dispatch a transition by name (the PATCH body shape)."""
        try:
            action = TaskAction(action)
        except ValueError:
            allowed = enum_values(TaskAction)
            raise TaskValidationError(
                f"Invalid action. Must be one of: {', '.join(allowed)}",
                field="action",
                allowed=allowed
            )

        if action == TaskAction.CLAIM:
            return await self.claim(task_id, agent_name)
        if action == TaskAction.START:
            return await self.start(task_id)
        if action == TaskAction.COMPLETE:
            return await self.complete(task_id, result)
        if action == TaskAction.FAIL:
            return await self.fail(task_id, error)
        return await self.cancel(task_id)

    async def get_task(self, task_id: str) -> Optional[AgentTask]:
        return await self.store.get_by_id(task_id)

    async def get_next_available_task(
        self,
        agent_name: Optional[str] = None,
        task_type: Optional[Union[str, TaskType]] = None
    ) -> Optional[AgentTask]:
        """
        Highest-priority, oldest pending task. Does not claim it.

        With no explicit task_type, a registered agent's capabilities limit
        the candidates to the task types it can perform.
        """
        if task_type:
            task_type = _require_enum({"type": task_type}, "type", TaskType)
            return await self._oldest_pending(task_type)

        capabilities = []
        if agent_name:
            agent = await self.store.get_agent_by_id(agent_name)
            if agent is not None:
                capabilities = [c for c in agent.capabilities if c in enum_values(TaskType)]

        if not capabilities:
            return await self._oldest_pending(None)

        candidates = [
            task for task in [await self._oldest_pending(TaskType(c)) for c in capabilities]
            if task is not None
        ]
        if not candidates:
            return None
        return min(candidates, key=lambda t: (t.priority_rank, t.created_at))

    async def _oldest_pending(self, task_type: Optional[TaskType]) -> Optional[AgentTask]:
        filters = TaskFilters(status=[TaskStatus.PENDING], type=task_type, limit=1)
        tasks = await self.store.query(filters, ordering=TaskOrdering.OLDEST_FIRST, limit=1)
        return tasks[0] if tasks else None
