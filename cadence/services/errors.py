"""
Error types for recurrence and instance materialization.

Error handling policy:
- InvalidRuleError surfaces to the caller immediately (bad rules fail fast)
- PersistenceError is logged and isolated per task during batch runs
- NotFoundError means the task/instance is gone; batch callers treat it as a no-op
"""

from typing import Any, Dict, Optional


class RecurrenceError(Exception):
    """Base exception for recurring task errors"""
    code = "RECURRENCE_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


class InvalidRuleError(RecurrenceError):
    """Malformed recurrence configuration."""
    code = "INVALID_RULE"


class PersistenceError(RecurrenceError):
    """Storage read/write failure."""
    code = "PERSISTENCE_ERROR"


class NotFoundError(RecurrenceError):
    """The task or instance no longer exists."""
    code = "NOT_FOUND"
