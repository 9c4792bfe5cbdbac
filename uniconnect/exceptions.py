"""
Custom Exceptions for UniConnect
================================

Services raise these instead of returning HTTP responses. The exception
handlers registered in `uniconnect.main` turn them into JSON bodies of the
form ``{"code": ..., "message": ..., "details": {...}}``.

Usage:
    from uniconnect.exceptions import NotFoundError, ForbiddenError

    if project is None:
        raise NotFoundError("Project", project_id)

    if not policy.can_edit(project, user_id):
        raise ForbiddenError("Edit privileges required", hint="requires_edit")
"""

from typing import Optional, Any, Dict


class UniConnectError(Exception):
    """Base exception for all expected UniConnect failures"""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Validation Errors (400)
# ============================================

class ValidationError(UniConnectError):
    """Input was malformed or out of range"""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class InvalidIdError(ValidationError):
    """Path or body id is not a valid ObjectId"""

    def __init__(self, value: str, field: Optional[str] = None):
        super().__init__(f"Invalid id format: '{value}'", field=field)
        self.code = "INVALID_ID"


# ============================================
# Authentication & Authorization Errors
# ============================================

class AuthenticationError(UniConnectError):
    """Missing, invalid or expired credentials"""

    status_code = 401

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message, code="AUTH_FAILED")


class ForbiddenError(UniConnectError):
    """
    Authorization predicate failed.

    `hint` is machine readable so clients can branch, e.g. show a
    "request to join" button for ``requires_join``.
    """

    status_code = 403

    def __init__(self, message: str = "Access denied", hint: Optional[str] = None):
        details = {"hint": hint} if hint else {}
        super().__init__(message, code="FORBIDDEN", details=details)
        self.hint = hint


# ============================================
# Resource Errors (404)
# ============================================

class NotFoundError(UniConnectError):
    """Resource is missing or soft-deleted"""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: Optional[str] = None):
        message = f"{resource_type} not found"
        details: Dict[str, Any] = {"resource_type": resource_type}
        if resource_id:
            details["resource_id"] = resource_id
        super().__init__(
            message,
            code=f"{resource_type.upper().replace(' ', '_')}_NOT_FOUND",
            details=details
        )


# ============================================
# Conflict Errors (409)
# ============================================

class ConflictError(UniConnectError):
    """Duplicate unique key or a state transition that already happened"""

    status_code = 409

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="CONFLICT", details=details)
