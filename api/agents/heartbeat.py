"""Agent heartbeat endpoint for Vercel.

POST /api/agents/heartbeat  body: {"agent_id": "..."}
"""

from src.services.agent_registry import AgentRegistry
from src.services.task_store import get_task_store
from src.utils.errors import TaskValidationError
from src.utils.http import dispatch, json_response, parse_json_body, run_async


def heartbeat(request: dict) -> dict:
    body = parse_json_body(request)
    agent_id = body.get("agent_id")
    if not agent_id:
        raise TaskValidationError("Missing required field: agent_id", field="agent_id")

    if not run_async(AgentRegistry(get_task_store()).heartbeat(agent_id)):
        return json_response(404, {"error": "Agent not found"})
    return json_response(200, {"ok": True, "agent_id": agent_id})


def handler(request):
    """Vercel serverless function handler for agent heartbeats."""
    return dispatch(request, {"POST": heartbeat}, operation="agent_heartbeat")
