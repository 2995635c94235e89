"""
pipelines/errors.py

Exception hierarchy for the case session layer.

Every error carries a short machine-readable ``code`` plus optional
structured ``details`` so the controller can log it and turn it into a
user-facing notice without string matching.
"""

from __future__ import annotations

from typing import Any


class TriageError(Exception):
    """Base exception for all Suma errors."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(TriageError, ValueError):
    """Local, user-correctable input problem (activation code, intake form)."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            details={"field": field} if field else None,
        )
        self.field = field


class AssistantUnavailable(TriageError):
    """The AI gateway request failed or raised."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code="ASSISTANT_UNAVAILABLE", details=details)


class StorageFault(TriageError):
    """Local persistence is unavailable, full or corrupted."""

    def __init__(self, message: str, operation: str = "unknown") -> None:
        super().__init__(
            message=message,
            code="STORAGE_FAULT",
            details={"operation": operation},
        )
        self.operation = operation


class NoActiveConversation(TriageError):
    """A follow-up was sent before any conversation was started or resumed."""

    def __init__(self) -> None:
        super().__init__(
            message="No conversation is active. Start a new case or resume one first.",
            code="NO_ACTIVE_CONVERSATION",
        )


class ExpiredAccess(TriageError):
    """The local access grant has run out; the session must end."""

    def __init__(self) -> None:
        super().__init__(message="Your access has expired.", code="EXPIRED_ACCESS")
