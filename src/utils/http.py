"""Request/response helpers for the Vercel serverless handlers in api/."""

import asyncio
import json
from typing import Any, Callable, Optional

from src.utils.errors import StoreError, StoreUnavailableError, TaskValidationError
from src.utils.logging import (
    correlation_context,
    correlation_id_from_headers,
    get_structured_logger,
)
from src.utils.logging_config import LoggingConfig

logger = get_structured_logger(__name__)


def json_response(status_code: int, body: Any, headers: Optional[dict] = None) -> dict:
    """Build a Vercel function response with a JSON body."""
    response_headers = {"Content-Type": "application/json"}
    if headers:
        response_headers.update(headers)
    return {
        "statusCode": status_code,
        "headers": response_headers,
        "body": json.dumps(body, default=str),
    }


def parse_json_body(request: dict) -> dict:
    """Request body as a dict; empty body is {}."""
    raw = request.get("body")
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    if not raw:
        return {}
    try:
        body = json.loads(raw)
    except json.JSONDecodeError:
        raise TaskValidationError("Request body is not valid JSON")
    if not isinstance(body, dict):
        raise TaskValidationError("Request body must be a JSON object")
    return body


def get_query(request: dict) -> dict[str, str]:
    """Query parameters with single values (first wins for repeated keys)."""
    query = request.get("query") or {}
    params = {}
    for key, value in query.items():
        if isinstance(value, (list, tuple)):
            value = value[0] if value else None
        params[key] = value
    return params


def parse_int(value: Optional[str], field: str) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise TaskValidationError(f"Invalid {field}: must be an integer", field=field)


def run_async(coro):
    """Run a coroutine to completion from a synchronous handler."""
    return asyncio.run(coro)


def error_response(exc: Exception, operation: str) -> dict:
    """Map the error taxonomy onto HTTP status codes."""
    if isinstance(exc, TaskValidationError):
        logger.info("Request rejected", operation=operation, error=exc.message, field=exc.field)
        return json_response(400, exc.to_dict())
    if isinstance(exc, StoreUnavailableError):
        logger.error("Task store unavailable", operation=operation, error=str(exc), exc_info=True)
        return json_response(503, {"error": "Task store unavailable", "retryable": True})
    if isinstance(exc, StoreError):
        logger.error("Task store error", operation=operation, error=str(exc), exc_info=True)
        return json_response(500, {"error": str(exc)})

    logger.error(f"Unhandled error in {operation}", operation=operation, error=str(exc), exc_info=True)
    return json_response(500, {"error": "internal server error"})


def dispatch(request: dict, routes: dict[str, Callable[[dict], dict]], operation: str) -> dict:
    """
    Route a request by HTTP method inside a correlation context.

    Every response carries the correlation ID header so callers can match
    their request to the service logs.
    """
    LoggingConfig.setup_logging()
    headers = request.get("headers") or {}

    with correlation_context(correlation_id_from_headers(headers)) as correlation_id:
        method = (request.get("method") or "GET").upper()
        route = routes.get(method)
        if route is None:
            response = json_response(
                405,
                {"error": f"Method {method} not allowed"},
                headers={"Allow": ", ".join(sorted(routes))}
            )
        else:
            try:
                response = route(request)
            except Exception as e:
                response = error_response(e, operation)

        response["headers"][LoggingConfig.LOG_CORRELATION_ID_HEADER] = correlation_id
        return response
