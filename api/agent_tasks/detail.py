"""Single agent task endpoint for Vercel (routed as /api/agent_tasks/{id} -> ?id={id}).

GET   - task details
PATCH - lifecycle transition
    Body:
    - action: 'claim' | 'start' | 'complete' | 'fail' | 'cancel' (required)
    - agent_name: required for 'claim'
    - result: required for 'complete'
    - error: required for 'fail'
"""

from src.models.agent_task import TaskAction
from src.services.task_lifecycle import TaskLifecycleManager
from src.services.task_store import get_task_store
from src.utils.errors import TaskValidationError
from src.utils.http import dispatch, get_query, json_response, parse_json_body, run_async

SUCCESS_MESSAGES = {
    TaskAction.CLAIM: "Task claimed by {agent_name}",
    TaskAction.START: "Task started",
    TaskAction.COMPLETE: "Task completed",
    TaskAction.FAIL: "Task marked as failed",
    TaskAction.CANCEL: "Task cancelled",
}

CONFLICT_MESSAGES = {
    TaskAction.CLAIM: "Could not claim task (may already be claimed)",
    TaskAction.START: "Could not start task (must be claimed first)",
    TaskAction.COMPLETE: "Could not complete task (must be claimed or in progress)",
    TaskAction.FAIL: "Could not mark task as failed (may already be finished)",
    TaskAction.CANCEL: "Could not cancel task (only pending or claimed tasks can be cancelled)",
}


def _task_id(request: dict) -> str:
    task_id = get_query(request).get("id")
    if not task_id:
        raise TaskValidationError("Missing required parameter: id", field="id")
    return task_id


def get_task(request: dict) -> dict:
    task_id = _task_id(request)
    task = run_async(TaskLifecycleManager(get_task_store()).get_task(task_id))
    if task is None:
        return json_response(404, {"error": "Task not found"})
    return json_response(200, {"success": True, "task": task.model_dump(mode="json")})


def update_task(request: dict) -> dict:
    task_id = _task_id(request)
    body = parse_json_body(request)
    if not body.get("action"):
        raise TaskValidationError("Missing required field: action", field="action")

    manager = TaskLifecycleManager(get_task_store())

    async def _run():
        applied = await manager.apply_action(
            task_id,
            body["action"],
            agent_name=body.get("agent_name"),
            result=body.get("result"),
            error=body.get("error"),
        )
        return applied, await manager.get_task(task_id)

    applied, task = run_async(_run())
    action = TaskAction(body["action"])

    if task is None:
        return json_response(404, {"success": False, "error": "Task not found"})
    if not applied:
        return json_response(409, {
            "success": False,
            "error": CONFLICT_MESSAGES[action],
            "status": task.status.value,
        })
    return json_response(200, {
        "success": True,
        "message": SUCCESS_MESSAGES[action].format(agent_name=body.get("agent_name")),
        "task": task.model_dump(mode="json"),
    })


def handler(request):
    """Vercel serverless function handler for a single task."""
    return dispatch(request, {"GET": get_task, "PATCH": update_task}, operation="agent_task_detail")
