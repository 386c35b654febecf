"""
Typed errors shared by the stores, the lifecycle service and the HTTP layer.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class FoundersError(Exception):
    """Base error carrying a short user-facing message and debug context."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "FOUNDERS_ERROR"
        self.context = context or {}


class ValidationError(FoundersError):
    """Missing required field or unsupported upload content type."""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(
            message,
            error_code="VALIDATION_ERROR",
            context={"field": field} if field else None,
        )
        self.field = field


class NotFoundError(FoundersError):
    status_code = 404

    def __init__(self, message: str = "Founder not found", founder_id: Optional[int] = None):
        super().__init__(
            message,
            error_code="NOT_FOUND",
            context={"founder_id": founder_id} if founder_id is not None else None,
        )
        self.founder_id = founder_id


class StorageError(FoundersError):
    """
    Database or filesystem failure.

    ``message`` is safe to show to clients; the underlying exception is kept
    on ``__cause__`` and in ``context`` for server-side logging.
    """

    status_code = 500

    def __init__(self, message: str = "Storage error", operation: Optional[str] = None):
        super().__init__(
            message,
            error_code="STORAGE_ERROR",
            context={"operation": operation} if operation else None,
        )
        self.operation = operation
