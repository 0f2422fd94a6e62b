"""Error handling utilities."""

from typing import Iterable, Optional


class AgentTasksError(Exception):
    """Base exception for the agent task queue backend."""
    pass


class TaskValidationError(AgentTasksError):
    """Caller input violates a required-field or enum-membership contract."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        allowed: Optional[Iterable[str]] = None
    ):
        super().__init__(message)
        self.message = message
        self.field = field
        self.allowed = list(allowed) if allowed is not None else None

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.field:
            body["field"] = self.field
        if self.allowed is not None:
            body["allowed"] = self.allowed
        return body


class StoreError(AgentTasksError):
    """Supabase operation error."""
    pass


class DuplicateTaskError(StoreError):
    """Insert rejected by a unique constraint."""
    pass


class StoreUnavailableError(AgentTasksError):
    """Persistence layer could not be reached; safe to retry."""
    retryable = True


class ActivityLogError(AgentTasksError):
    """Activity log write failed."""
    pass
