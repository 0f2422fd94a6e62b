"""Health check endpoint."""

from http.server import BaseHTTPRequestHandler
import json

from src.services.task_store import get_task_store
from src.utils.config import TaskQueueConfig
from src.utils.http import run_async
from src.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)


def check_store() -> bool:
    """True if the task store answers a count query."""
    try:
        run_async(get_task_store().count())
        return True
    except Exception as e:
        logger.warning("Health check: task store unavailable", error=str(e))
        return False


class handler(BaseHTTPRequestHandler):
    """Health check handler for Vercel serverless function."""

    def do_GET(self):
        store_ok = check_store()
        self.send_response(200 if store_ok else 503)
        self.send_header('Content-Type', 'application/json')
        self.end_headers()
        response = json.dumps({
            "status": "ok" if store_ok else "degraded",
            "service": TaskQueueConfig.SERVICE_NAME,
            "store": "ok" if store_ok else "unavailable",
        })
        self.wfile.write(response.encode('utf-8'))

    def do_POST(self):
        """Handle POST request (same as GET for health check)."""
        self.do_GET()
