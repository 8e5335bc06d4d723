"""Exceptions raised by the conversation engine."""
from typing import Any, Dict, Optional


class ChatEngineException(Exception):
    """Base exception for the conversation engine."""

    def __init__(
        self,
        message: str,
        error_code: str = "CHAT_ENGINE_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(ChatEngineException):
    """Raised for unusable input, e.g. an empty message."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "VALIDATION_ERROR", details)


class PersistenceError(ChatEngineException):
    """Raised when a persistence or memory gateway call fails."""

    def __init__(
        self, operation: str, message: str, details: Optional[Dict[str, Any]] = None
    ):
        error_details = {"operation": operation}
        if details:
            error_details.update(details)
        super().__init__(
            f"Persistence operation '{operation}' failed: {message}",
            "PERSISTENCE_ERROR",
            error_details,
        )
        self.operation = operation


class NotFoundError(PersistenceError):
    """Raised when a conversation or memory item does not exist."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            f"get_{resource}",
            f"{resource} with identifier '{identifier}' not found",
            {"resource": resource, "identifier": identifier},
        )
        self.error_code = "NOT_FOUND"


class CompletionError(ChatEngineException):
    """Raised when the language model call fails."""

    def __init__(
        self, message: str, model: Optional[str] = None, details: Optional[Dict[str, Any]] = None
    ):
        error_details: Dict[str, Any] = {"model": model} if model else {}
        if details:
            error_details.update(details)
        super().__init__(
            f"Completion failed: {message}", "COMPLETION_ERROR", error_details
        )


class BackgroundTaskError(ChatEngineException):
    """Raised inside memory extraction or title generation tasks."""

    def __init__(
        self, task: str, message: str, details: Optional[Dict[str, Any]] = None
    ):
        error_details = {"task": task}
        if details:
            error_details.update(details)
        super().__init__(
            f"Background task '{task}' failed: {message}",
            "BACKGROUND_TASK_ERROR",
            error_details,
        )
