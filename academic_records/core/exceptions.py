# academic_records/core/exceptions.py
from typing import Any, Dict, Optional


class BaseAppException(Exception):
    """Base exception class for the application"""
    error_code = "INTERNAL_ERROR"
    default_message = "Internal error"

    def __init__(
        self,
        message: Optional[str] = None,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message or self.default_message
        self.field = field
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error_code": self.error_code, "message": self.message}
        if self.field:
            payload["field"] = self.field
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(BaseAppException):
    """Raised when a context, roster or payload is missing or malformed"""
    error_code = "VALIDATION_ERROR"
    default_message = "Validation error"


class PermissionDenied(BaseAppException):
    """Raised when an identity is not allowed to read or write the requested scope"""
    error_code = "PERMISSION_DENIED"
    default_message = "Operation not permitted"


class NotFound(BaseAppException):
    """Raised when a referenced student, commission or tutoring assignment is absent"""
    error_code = "NOT_FOUND"
    default_message = "Resource not found"


class RegistrationConflict(BaseAppException):
    """Raised when a natural key stays in conflict after the retry-as-update path"""
    error_code = "REGISTRATION_CONFLICT"
    default_message = "Natural key already registered"

    def __init__(
        self,
        key: Dict[str, Any],
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.key = dict(key)
        super().__init__(
            message=message or f"Conflicting record for key {self.key}",
            field="key",
            details={**(details or {}), "key": self.key}
        )


class StoreUnavailable(BaseAppException):
    """Raised when the persistence layer times out or cannot be reached"""
    error_code = "STORE_UNAVAILABLE"
    default_message = "Database operation failed"
