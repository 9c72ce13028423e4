"""
StackIt Backend — Custom Exception Hierarchy
=============================================

What:  Application-specific exceptions for every failure the engine can report.
Why:   Each rule violation needs a distinct type so route handlers stay thin and
       global handlers (registered in main.py) can map it to a status code.
How:   Each exception carries a user-facing message and an optional context
       dict. The context is logged server-side and only echoed back for 4xx.

Exception Hierarchy:
    StackItError (base)
    ├── ValidationError          → 400 Bad Request
    ├── SelfActionError          → 400 Bad Request
    │   └── SelfVoteError
    ├── NothingAcceptedError     → 400 Bad Request
    ├── UnauthorizedError        → 401 Unauthorized
    ├── ForbiddenError           → 403 Forbidden
    ├── NotFoundError            → 404 Not Found
    ├── ConflictError            → 409 Conflict (deletion guard)
    │   └── WriteConflictError   → 409 Conflict (lost race, retried first)
    ├── DatabaseError            → 500 Internal Server Error
    └── RateLimitExceededError   → 429 Too Many Requests

Retry semantics:
    Only WriteConflictError is transient. The unit of work retries it; every
    other error is terminal for the call and leaves no partial state behind
    because the surrounding transaction is rolled back.
"""

from typing import Any, Dict, Optional


class StackItError(Exception):
    """
    Base exception for all StackIt application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged; returned only for client errors)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(StackItError):
    """Raised when client input fails a business-level validation rule."""

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class NotFoundError(StackItError):
    """
    Raised when a user, question, answer or notification does not exist.

    Soft-deleted questions and answers are reported as missing too: from the
    engine's point of view a deleted post can no longer be voted on,
    accepted, or deleted again.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class SelfActionError(StackItError):
    """Raised when a user tries to act on their own content where that is not allowed."""

    def __init__(
        self,
        message: str = "You cannot perform this action on your own content",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class SelfVoteError(SelfActionError):
    """Raised when a user votes on a question or answer they wrote."""

    def __init__(self, target_type: str = "post", context: Optional[Dict[str, Any]] = None):
        ctx = context or {}
        ctx["target_type"] = target_type
        super().__init__(message=f"You cannot vote on your own {target_type}", context=ctx)


class UnauthorizedError(StackItError):
    """Raised when a request carries no (or an unusable) caller identity."""

    def __init__(
        self,
        message: str = "Authentication required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ForbiddenError(StackItError):
    """
    Raised when the caller is known but not allowed to perform the action.

    Examples: accepting an answer on someone else's question, deleting
    another user's answer without the admin role, voting as a guest.
    """

    def __init__(
        self,
        message: str = "You do not have permission to perform this action",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ConflictError(StackItError):
    """
    Raised when the requested change conflicts with current state.

    Deletion guards raise this directly (an accepted answer, a question that
    still has answers). The caller must resolve the conflict first, e.g. by
    unaccepting the answer.
    """

    def __init__(
        self,
        message: str = "The request conflicts with the current state of the resource",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class WriteConflictError(ConflictError):
    """
    Raised when a concurrent request modified the same target first.

    What:    Optimistic version mismatch or a duplicate vote row on commit.
    Retry:   The unit of work re-runs the whole read-decide-write sequence
             a few times before surfacing this to the caller. Engine
             operations are safe to replay, so clients may retry too.
    """

    def __init__(
        self,
        operation: str = "operation",
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["operation"] = operation
        super().__init__(
            message=(
                f"The {operation} could not be completed because the same item was "
                f"modified concurrently. Please retry."
            ),
            context=ctx,
        )
        self.operation = operation


class NothingAcceptedError(StackItError):
    """Raised when unaccepting on a question that has no accepted answer."""

    def __init__(self, question_id: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        ctx = context or {}
        if question_id:
            ctx["question_id"] = question_id
        super().__init__(message="No answer is currently accepted", context=ctx)


class DatabaseError(StackItError):
    """
    Raised when database operations fail unexpectedly.

    The message returned to the client is always generic; details are logged
    server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(StackItError):
    """Raised when a caller exceeds the write rate limit."""

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
