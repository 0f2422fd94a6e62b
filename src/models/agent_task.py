"""AgentTask model - units of work claimed and executed by autonomous agents."""

from enum import Enum
from typing import Optional, Union
from datetime import datetime
from pydantic import BaseModel, Field, field_validator

from src.utils.config import TaskQueueConfig


class TaskType(str, Enum):
    """Valid task types."""
    # Social/PR
    POST_FEEDBACK = "post_feedback"
    POST_EDIT = "post_edit"
    POST_CREATE = "post_create"
    POST_APPROVE = "post_approve"
    POST_SCHEDULE = "post_schedule"
    # Book/Editorial
    BOOK_EDIT = "book_edit"
    BOOK_CREATE = "book_create"
    BOOK_REVIEW = "book_review"
    BOOK_TRANSLATE = "book_translate"
    # Images
    IMAGE_GENERATE = "image_generate"
    IMAGE_EDIT = "image_edit"
    IMAGE_UPSCALE = "image_upscale"
    # Content
    CONTENT_CREATE = "content_create"
    CONTENT_REVIEW = "content_review"
    CONTENT_TRANSLATE = "content_translate"
    # Engineering
    CODE_REVIEW = "code_review"
    CODE_FIX = "code_fix"
    CODE_DEPLOY = "code_deploy"
    CODE_TEST = "code_test"
    # QA
    QA_TEST = "qa_test"
    QA_REPORT = "qa_report"
    QA_VALIDATE = "qa_validate"
    # Automation
    AUTOMATION_RUN = "automation_run"
    AUTOMATION_SCHEDULE = "automation_schedule"
    AUTOMATION_MONITOR = "automation_monitor"
    # Agent-to-agent
    AGENT_MESSAGE = "agent_message"
    AGENT_REQUEST = "agent_request"
    AGENT_RESPONSE = "agent_response"


class TargetType(str, Enum):
    """Entity kinds a task can point at."""
    POST = "post"
    BOOK = "book"
    IMAGE = "image"
    CODE = "code"
    TEST = "test"
    DEPLOYMENT = "deployment"
    MESSAGE = "message"
    GENERAL = "general"


class TaskStatus(str, Enum):
    """Task lifecycle states."""
    PENDING = "pending"
    CLAIMED = "claimed"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


class TaskPriority(str, Enum):
    """Queue priorities."""
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class SourceDashboard(str, Enum):
    """Systems that create tasks."""
    ONDE_SURF = "onde.surf"
    FREERIVERFLOW = "freeriverflow"
    TELEGRAM = "telegram"
    CLI = "cli"


class TaskAction(str, Enum):
    """Lifecycle transitions callers can request."""
    CLAIM = "claim"
    START = "start"
    COMPLETE = "complete"
    FAIL = "fail"
    CANCEL = "cancel"


# Lower rank = dequeued first
PRIORITY_RANK: dict[TaskPriority, int] = {
    TaskPriority.URGENT: 1,
    TaskPriority.HIGH: 2,
    TaskPriority.NORMAL: 3,
    TaskPriority.LOW: 4,
}

TERMINAL_STATUSES = frozenset({TaskStatus.DONE, TaskStatus.FAILED, TaskStatus.CANCELLED})

# action -> (statuses the task must currently be in, status it moves to)
TRANSITIONS: dict[TaskAction, tuple[frozenset, TaskStatus]] = {
    TaskAction.CLAIM: (frozenset({TaskStatus.PENDING}), TaskStatus.CLAIMED),
    TaskAction.START: (frozenset({TaskStatus.CLAIMED}), TaskStatus.IN_PROGRESS),
    TaskAction.COMPLETE: (
        frozenset({TaskStatus.CLAIMED, TaskStatus.IN_PROGRESS}),
        TaskStatus.DONE,
    ),
    TaskAction.FAIL: (
        frozenset({TaskStatus.PENDING, TaskStatus.CLAIMED, TaskStatus.IN_PROGRESS}),
        TaskStatus.FAILED,
    ),
    TaskAction.CANCEL: (
        frozenset({TaskStatus.PENDING, TaskStatus.CLAIMED}),
        TaskStatus.CANCELLED,
    ),
}


def enum_values(enum_cls: type[Enum]) -> list[str]:
    """Allowed string values of an enum, in declaration order."""
    return [member.value for member in enum_cls]


class AgentTask(BaseModel):
    """AgentTask model - one row of the agent_tasks table."""
    id: str = Field(..., description="Task ID (task_<ULID>)")
    type: TaskType = Field(..., description="Task type")
    target_id: Optional[str] = Field(None, description="ID of the entity the task concerns")
    target_type: Optional[TargetType] = Field(None, description="Kind of entity the task concerns")
    description: str = Field(..., min_length=1, description="Human-readable summary")
    payload: Optional[str] = Field(None, description="Opaque serialized task parameters")
    status: TaskStatus = Field(default=TaskStatus.PENDING, description="Lifecycle state")
    assigned_to: Optional[str] = Field(None, description="Agent responsible for the task")
    source_agent: Optional[str] = Field(None, description="Agent that created the task")
    source_dashboard: Optional[SourceDashboard] = Field(None, description="System that created the task")
    priority: TaskPriority = Field(default=TaskPriority.NORMAL, description="Queue priority")
    created_by: str = Field(default=TaskQueueConfig.DEFAULT_CREATED_BY, description="Creator identity")
    created_at: datetime
    claimed_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    due_at: Optional[datetime] = Field(None, description="Advisory deadline, not enforced")
    result: Optional[str] = Field(None, description="Set when status is done")
    error: Optional[str] = Field(None, description="Set when status is failed")
    metadata: Optional[str] = Field(None, description="Opaque serialized auxiliary data")

    @property
    def priority_rank(self) -> int:
        return PRIORITY_RANK[self.priority]

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_row(self) -> dict:
        """Serialize for the store, including the derived priority rank column."""
        row = self.model_dump(mode="json")
        row["priority_rank"] = self.priority_rank
        return row


class TaskFilters(BaseModel):
    """Conjunctive filters for task listings."""
    status: Optional[list[TaskStatus]] = None
    assigned_to: Optional[str] = None
    type: Optional[TaskType] = None
    priority: Optional[TaskPriority] = None
    source_agent: Optional[str] = None
    source_dashboard: Optional[SourceDashboard] = None
    limit: int = Field(default=TaskQueueConfig.TASK_LIST_DEFAULT_LIMIT, ge=1)

    @field_validator("status", mode="before")
    @classmethod
    def split_status(cls, value: Union[None, str, list, tuple, set]):
        """Accept a single status, a comma-separated string, or a collection."""
        if value is None or value == "":
            return None
        if isinstance(value, (TaskStatus, str)):
            value = [part.strip() for part in str(getattr(value, "value", value)).split(",") if part.strip()]
        return list(value)

    @field_validator("limit")
    @classmethod
    def cap_limit(cls, value: int) -> int:
        return min(value, TaskQueueConfig.TASK_LIST_MAX_LIMIT)


class TaskOrdering(str, Enum):
    """Order within a priority tier."""
    NEWEST_FIRST = "newest_first"  # listings
    OLDEST_FIRST = "oldest_first"  # dequeue (FIFO)


class TaskStats(BaseModel):
    """Aggregate task counts."""
    total: int = 0
    pending: int = 0
    in_progress: int = Field(0, description="claimed + in_progress")
    done: int = 0
    failed: int = 0
