"""Activity model - audit/feed entries for task lifecycle events."""

from enum import Enum
from typing import Optional, Any
from datetime import datetime
from pydantic import BaseModel, Field


class ActivityAction(str, Enum):
    """Lifecycle events written to the activity log."""
    TASK_CREATED = "task_created"
    TASK_CLAIMED = "task_claimed"
    TASK_STARTED = "task_started"
    TASK_COMPLETED = "task_completed"
    TASK_FAILED = "task_failed"
    TASK_CANCELLED = "task_cancelled"


class ActivityEntry(BaseModel):
    """Activity model - one row of the activity_log table."""
    id: Optional[int] = Field(None, description="Row ID assigned by the store")
    actor: str = Field(..., description="Agent or caller that caused the event")
    action: str = Field(..., description="Event name, see ActivityAction")
    details: dict[str, Any] = Field(default_factory=dict, description="Event payload")
    created_at: datetime
