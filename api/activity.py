"""Activity feed endpoint for Vercel.

GET /api/activity?limit=20&action=task_completed&actor=agent-1
"""

from src.services.activity_logger import ActivityLogger
from src.services.task_store import get_task_store
from src.utils.config import TaskQueueConfig
from src.utils.errors import TaskValidationError
from src.utils.http import dispatch, get_query, json_response, parse_int, run_async


def get_activity(request: dict) -> dict:
    query = get_query(request)
    limit = parse_int(query.get("limit"), "limit")
    if limit is None:
        limit = TaskQueueConfig.ACTIVITY_FEED_DEFAULT_LIMIT
    if limit < 1:
        raise TaskValidationError("Invalid limit: must be at least 1", field="limit")

    entries = run_async(ActivityLogger(get_task_store()).recent(
        limit=min(limit, TaskQueueConfig.TASK_LIST_MAX_LIMIT),
        action=query.get("action") or None,
        actor=query.get("actor") or None,
    ))
    return json_response(200, {
        "activities": [entry.model_dump(mode="json") for entry in entries],
        "count": len(entries),
    })


def handler(request):
    """Vercel serverless function handler for the activity feed."""
    return dispatch(request, {"GET": get_activity}, operation="activity")
