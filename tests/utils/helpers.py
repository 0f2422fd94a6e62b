"""Test helper functions."""

import json
from typing import Any, Dict, Optional


def create_vercel_request(
    method: str = "GET",
    path: str = "/api/agent_tasks",
    body: Any = None,
    query: Optional[Dict[str, str]] = None,
    headers: Optional[Dict[str, str]] = None
) -> Dict[str, Any]:
    """Create a Vercel request object for testing."""
    if headers is None:
        headers = {
            "content-type": "application/json"
        }

    return {
        "method": method,
        "path": path,
        "headers": headers,
        "body": json.dumps(body) if isinstance(body, dict) else body,
        "query": query or {}
    }


def response_json(response: Dict[str, Any]) -> Dict[str, Any]:
    """Decode a Vercel function response body."""
    return json.loads(response["body"])
