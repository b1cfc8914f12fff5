"""Custom exception hierarchy for the forum core."""

from enum import Enum
from typing import Optional, Dict, Any


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Lookup errors
    ROLE_NOT_FOUND = "ROLE_NOT_FOUND"
    CATEGORY_NOT_FOUND = "CATEGORY_NOT_FOUND"
    THREAD_NOT_FOUND = "THREAD_NOT_FOUND"
    POST_NOT_FOUND = "POST_NOT_FOUND"

    # Role administration
    PROTECTED_ROLE = "PROTECTED_ROLE"
    DUPLICATE_SYSTEM_ROLE = "DUPLICATE_SYSTEM_ROLE"

    # Search errors
    SEARCH_PARSE_ERROR = "SEARCH_PARSE_ERROR"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Authorization
    FORBIDDEN = "FORBIDDEN"

    # Database errors
    DATABASE_ERROR = "DATABASE_ERROR"

    # Generic errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ForumException(Exception):
    """
    Base exception for all forum core errors.

    Provides structured error responses with:
    - Human-readable message
    - Machine-readable error code
    - HTTP status code
    - Optional additional details
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for JSON response.

        Returns:
            Dictionary with error, message, and details fields
        """
        return {
            "error": self.error_code.value,
            "message": self.message,
            "details": self.details
        }


class RoleNotFoundError(ForumException):
    """Role lookup by id, name or type missed."""

    def __init__(self, role_id: Any):
        super().__init__(
            f"Role not found: {role_id}",
            ErrorCode.ROLE_NOT_FOUND,
            status_code=404,
            details={"role_id": role_id}
        )


class CategoryNotFoundError(ForumException):
    """Category does not exist, or the caller may not see it.

    Both cases deliberately produce the same error so that hidden categories
    are indistinguishable from missing ones.
    """

    def __init__(self, category_id: Any):
        super().__init__(
            f"Category not found: {category_id}",
            ErrorCode.CATEGORY_NOT_FOUND,
            status_code=404,
            details={"category_id": category_id}
        )


class ThreadNotFoundError(ForumException):
    """Thread not found (or soft-deleted)."""

    def __init__(self, thread_id: Any):
        super().__init__(
            f"Thread not found: {thread_id}",
            ErrorCode.THREAD_NOT_FOUND,
            status_code=404,
            details={"thread_id": thread_id}
        )


class PostNotFoundError(ForumException):
    """Post not found (or soft-deleted)."""

    def __init__(self, post_id: Any):
        super().__init__(
            f"Post not found: {post_id}",
            ErrorCode.POST_NOT_FOUND,
            status_code=404,
            details={"post_id": post_id}
        )


class ValidationError(ForumException):
    """Validation failed for caller input."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(
            message,
            ErrorCode.VALIDATION_ERROR,
            status_code=400,
            details=details
        )


class SearchParseError(ForumException):
    """Search query syntax is malformed."""

    def __init__(self, message: str, position: Optional[int] = None):
        details = {"position": position} if position is not None else {}
        super().__init__(
            message,
            ErrorCode.SEARCH_PARSE_ERROR,
            status_code=400,
            details=details
        )
        self.position = position


class ForbiddenError(ForumException):
    """Caller can see the resource but lacks permission for the action."""

    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(
            message,
            ErrorCode.FORBIDDEN,
            status_code=403,
        )


class ProtectedRoleError(ForumException):
    """Operation is not allowed on a system role."""

    def __init__(self, role_id: int, message: str = "System roles cannot be modified this way"):
        super().__init__(
            message,
            ErrorCode.PROTECTED_ROLE,
            status_code=403,
            details={"role_id": role_id}
        )


class DuplicateSystemRoleError(ForumException):
    """More than one role exists for a system role type.

    Only raised inside the repair routine, which handles it itself.
    """

    def __init__(self, role_type: str, role_ids: list):
        super().__init__(
            f"Found {len(role_ids)} roles of system type '{role_type}'",
            ErrorCode.DUPLICATE_SYSTEM_ROLE,
            status_code=500,
            details={"role_type": role_type, "role_ids": role_ids}
        )


class DatabaseError(ForumException):
    """Database operation failed."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        details = {}
        if original_error:
            details["original_error"] = str(original_error)

        super().__init__(
            message,
            ErrorCode.DATABASE_ERROR,
            status_code=500,
            details=details
        )
