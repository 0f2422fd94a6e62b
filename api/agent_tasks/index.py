"""Agent tasks collection endpoint for Vercel.

GET  /api/agent_tasks - list tasks
    Query params:
    - status: filter by status (comma-separated for several)
    - assigned_to, type, priority, source_agent, source_dashboard
    - limit: max results (default 100, capped at 500); the response echoes
      the limit actually applied
    - stats: 'true' to include aggregate counts
POST /api/agent_tasks - create a task
    Body: type and description required; target_id, target_type, priority,
    assigned_to, source_agent, source_dashboard, payload, due_at, metadata,
    created_by optional.
"""

from src.services.task_lifecycle import TaskLifecycleManager
from src.services.task_query import TaskQueryService, build_filters
from src.services.task_store import get_task_store
from src.utils.http import dispatch, get_query, json_response, parse_json_body, run_async

FILTER_PARAMS = ("status", "assigned_to", "type", "priority", "source_agent", "source_dashboard", "limit")


def list_tasks(request: dict) -> dict:
    query = get_query(request)
    filters = build_filters({key: query.get(key) for key in FILTER_PARAMS if query.get(key)})
    include_stats = (query.get("stats") or "").lower() == "true"

    async def _run():
        service = TaskQueryService(get_task_store())
        tasks = await service.list_tasks(filters)
        body = {
            "success": True,
            "tasks": [task.model_dump(mode="json") for task in tasks],
            "count": len(tasks),
            "limit": filters.limit,
        }
        if include_stats:
            body["stats"] = (await service.get_stats()).model_dump()
        return body

    return json_response(200, run_async(_run()))


def create_task(request: dict) -> dict:
    body = parse_json_body(request)
    manager = TaskLifecycleManager(get_task_store())
    task = run_async(manager.create(body))
    return json_response(201, {"success": True, "task": task.model_dump(mode="json")})


def handler(request):
    """Vercel serverless function handler for the task collection."""
    return dispatch(request, {"GET": list_tasks, "POST": create_task}, operation="agent_tasks")
