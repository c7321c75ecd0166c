"""Error Hierarchy — typed, categorized exceptions for all Orbit failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Provider, plan and image errors abort the request before any side effect
    - Per-action failures are NOT exceptions: they become Failed ActionOutcomes
    - to_response() never leaks internal details when a user_message is set

Design Decisions:
    - Single hierarchy with OrbitError base: FastAPI global handler catches all
      (ADR: uniform error shape)
    - ErrorContext as dataclass: rich observability without coupling to logging
    - Provider failures and "nothing found" are distinct types — an absent value
      never means "the provider call failed"
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    BUSINESS_RULE = "business_rule"
    RESOURCE_NOT_FOUND = "resource_not_found"
    DATABASE = "database"
    EXTERNAL_API = "external_api"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    owner_id: str | None = None
    operation: str | None = None
    attempt: int | None = None
    provider_status: int | None = None
    user_message: str | None = None


class OrbitError(Exception):
    """Base exception for all Orbit errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    @property
    def user_message(self) -> str:
        """Short, non-technical message safe to show the end user."""
        return self.context.user_message or self.message

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.user_message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
            }
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class PlanValidationError(OrbitError):
    """Provider-proposed action plan failed semantic validation. Nothing executed."""
    def __init__(self, reasons: list[str], context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.user_message = ctx.user_message or (
            "I couldn't safely apply that request. Please rephrase it and try again."
        )
        super().__init__(
            f"Action plan rejected: {'; '.join(reasons)}",
            "PLAN_VALIDATION_FAILED", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, ctx, 422,
        )
        self.reasons = reasons

    def to_response(self) -> dict:
        response = super().to_response()
        response["error"]["reasons"] = self.reasons
        return response


class ImageValidationError(OrbitError):
    """Uploaded image rejected before reaching the provider."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.user_message = ctx.user_message or message
        super().__init__(
            message, "IMAGE_INVALID", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, ctx, 400,
        )


# ─── Provider Errors (500-level) ────────────────────────────────

_PROVIDER_USER_MESSAGE = "The assistant is temporarily unavailable. Please try again shortly."


class ProviderError(OrbitError):
    """Base for completion-provider failures."""
    def __init__(
        self,
        message: str,
        code: str,
        http_status: int,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.user_message = ctx.user_message or _PROVIDER_USER_MESSAGE
        super().__init__(
            message, code, ErrorCategory.EXTERNAL_API,
            ErrorSeverity.CRITICAL, ctx, http_status,
        )


class ProviderUnavailableError(ProviderError):
    """Network failure, timeout, or non-429 non-2xx provider status. Never retried."""
    def __init__(
        self,
        message: str,
        provider_status: int | None = None,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.provider_status = provider_status
        super().__init__(
            f"Completion provider unavailable ({provider_status or 'no status'}): {message}",
            "PROVIDER_UNAVAILABLE", 503, ctx,
        )
        self.provider_status = provider_status


class ProviderThrottledError(ProviderError):
    """Provider kept answering 429 after every backoff attempt."""
    def __init__(self, attempts: int, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.provider_status = 429
        ctx.attempt = attempts
        super().__init__(
            f"Completion provider rate limit exceeded after {attempts} attempts",
            "PROVIDER_THROTTLED", 503, ctx,
        )
        self.attempts = attempts


class MalformedProviderOutputError(ProviderError):
    """Provider answered 2xx but the text is not schema-conforming JSON."""
    def __init__(self, reason: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.user_message = ctx.user_message or (
            "I couldn't understand that request. Please try rephrasing it."
        )
        super().__init__(
            f"Malformed provider output: {reason}",
            "PROVIDER_MALFORMED_OUTPUT", 502, ctx,
        )
        self.reason = reason


class EmptyProviderOutputError(ProviderError):
    """Provider answered 2xx without usable text where a result is required."""
    def __init__(self, what: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.user_message = ctx.user_message or (
            "I couldn't come up with anything for that request. Please try again."
        )
        super().__init__(
            f"Provider returned no {what}",
            "PROVIDER_EMPTY_OUTPUT", 502, ctx,
        )


# ─── Infrastructure Errors ──────────────────────────────────────

class DatabaseError(OrbitError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation
