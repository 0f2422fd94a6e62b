"""Agent registry endpoint for Vercel.

GET  /api/agents                       - all agents, by name
GET  /api/agents?id={id}               - one agent with level/progress
GET  /api/agents?leaderboard=true&limit=N
POST /api/agents                       - register or update an agent
"""

from src.services.agent_registry import AgentRegistry
from src.services.task_store import get_task_store
from src.utils.errors import TaskValidationError
from src.utils.http import dispatch, get_query, json_response, parse_int, parse_json_body, run_async


def get_agents(request: dict) -> dict:
    query = get_query(request)
    registry = AgentRegistry(get_task_store())

    if query.get("id"):
        profile = run_async(registry.get_agent_profile(query["id"]))
        if profile is None:
            return json_response(404, {"error": "Agent not found"})
        return json_response(200, {"success": True, "agent": profile.model_dump(mode="json")})

    if (query.get("leaderboard") or "").lower() == "true":
        limit = parse_int(query.get("limit"), "limit")
        if limit is not None and limit < 1:
            raise TaskValidationError("Invalid limit: must be at least 1", field="limit")
        profiles = run_async(registry.leaderboard(limit or 10))
        return json_response(200, {
            "success": True,
            "leaderboard": [profile.model_dump(mode="json") for profile in profiles],
        })

    agents = run_async(registry.list_agents())
    return json_response(200, {
        "success": True,
        "agents": [agent.model_dump(mode="json") for agent in agents],
        "count": len(agents),
    })


def register_agent(request: dict) -> dict:
    body = parse_json_body(request)
    agent = run_async(AgentRegistry(get_task_store()).register(body))
    return json_response(200, {"success": True, "agent": agent.model_dump(mode="json")})


def handler(request):
    """Vercel serverless function handler for the agent registry."""
    return dispatch(request, {"GET": get_agents, "POST": register_agent}, operation="agents")
