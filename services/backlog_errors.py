"""
Backlog error taxonomy.

Every failure surfaced by the ranking engine and the backlog services is a
BacklogError carrying a stable code and the HTTP status the routes answer with.
"""

from typing import Optional, Dict, Any


class BacklogError(Exception):
    """Base exception for backlog operations."""
    code = "backlog_error"
    status_code = 500

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'success': False,
            'error': self.code,
            'message': self.message,
        }
        if self.context:
            data['context'] = self.context
        return data


class ValidationError(BacklogError):
    """Malformed or missing input; raised before any write."""
    code = "validation_error"
    status_code = 400


class EmptyInput(ValidationError):
    code = "empty_input"


class InvalidArgument(ValidationError):
    code = "invalid_argument"


class NotFound(BacklogError):
    code = "not_found"
    status_code = 404


class Forbidden(BacklogError):
    code = "forbidden"
    status_code = 403


class Conflict(BacklogError):
    """The store kept rejecting a transaction (uniqueness or serialization failure)."""
    code = "conflict"
    status_code = 409


class StorageError(BacklogError):
    code = "storage_error"
    status_code = 500
