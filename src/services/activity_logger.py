"""Activity logger - best-effort audit/feed entries for task lifecycle events."""

from datetime import datetime, timezone
from typing import Any, Optional

from src.models.activity import ActivityAction, ActivityEntry
from src.services.task_store import TaskStore
from src.utils.config import TaskQueueConfig
from src.utils.logging import get_structured_logger, get_correlation_id

logger = get_structured_logger(__name__)

SYSTEM_ACTOR = "system"


class ActivityLogger:
    """Write lifecycle events to the activity log without ever failing the caller."""

    def __init__(self, store: TaskStore):
        self.store = store

    async def log(
        self,
        action: ActivityAction,
        actor: Optional[str] = None,
        details: Optional[dict[str, Any]] = None
    ) -> Optional[ActivityEntry]:
        """
        Append an activity entry.

        Returns the stored entry, or None if the write failed. Failures are
        logged and discarded: the activity log is diagnostic only.
        """
        entry = ActivityEntry(
            actor=actor or SYSTEM_ACTOR,
            action=action.value,
            details=details or {},
            created_at=datetime.now(timezone.utc),
        )
        try:
            return await self.store.insert_activity(entry)
        except Exception as e:
            logger.warning(
                "Failed to log activity (non-fatal)",
                correlation_id=get_correlation_id(),
                action=entry.action,
                actor=entry.actor,
                error=str(e)
            )
            return None

    async def recent(
        self,
        limit: int = TaskQueueConfig.ACTIVITY_FEED_DEFAULT_LIMIT,
        action: Optional[str] = None,
        actor: Optional[str] = None
    ) -> list[ActivityEntry]:
        """Newest activity entries first, optionally filtered by action and actor."""
        return await self.store.list_activity(limit=limit, action=action, actor=actor)
