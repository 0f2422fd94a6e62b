"""Next available task endpoint for Vercel.

GET /api/agent_tasks/next?agent_name=&type=
Returns the most urgent, oldest pending task without claiming it.
"""

from src.services.task_lifecycle import TaskLifecycleManager
from src.services.task_store import get_task_store
from src.utils.http import dispatch, get_query, json_response, run_async


def next_task(request: dict) -> dict:
    query = get_query(request)
    manager = TaskLifecycleManager(get_task_store())
    task = run_async(manager.get_next_available_task(
        agent_name=query.get("agent_name") or None,
        task_type=query.get("type") or None,
    ))
    return json_response(200, {
        "success": True,
        "task": task.model_dump(mode="json") if task else None,
    })


def handler(request):
    """Vercel serverless function handler for dequeue polling."""
    return dispatch(request, {"GET": next_task}, operation="agent_tasks_next")
