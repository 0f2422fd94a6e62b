"""Task queue configuration read from environment variables."""

import os


class TaskQueueConfig:
    """Centralized task queue configuration."""

    SERVICE_NAME = os.environ.get("SERVICE_NAME", "agent-tasks")

    # Supabase tables
    AGENT_TASKS_TABLE = os.environ.get("AGENT_TASKS_TABLE", "agent_tasks")
    AGENTS_TABLE = os.environ.get("AGENTS_TABLE", "agents")
    ACTIVITY_LOG_TABLE = os.environ.get("ACTIVITY_LOG_TABLE", "activity_log")

    # Gamification
    XP_PER_TASK = int(os.environ.get("AGENT_XP_PER_TASK", "10"))

    # Listing limits
    TASK_LIST_DEFAULT_LIMIT = int(os.environ.get("TASK_LIST_DEFAULT_LIMIT", "100"))
    TASK_LIST_MAX_LIMIT = int(os.environ.get("TASK_LIST_MAX_LIMIT", "500"))
    AGENT_TASK_LIST_LIMIT = int(os.environ.get("AGENT_TASK_LIST_LIMIT", "50"))
    ACTIVITY_FEED_DEFAULT_LIMIT = int(os.environ.get("ACTIVITY_FEED_DEFAULT_LIMIT", "20"))

    # Generic caller label when a task is created without created_by
    DEFAULT_CREATED_BY = os.environ.get("TASK_DEFAULT_CREATED_BY", "dashboard")
