"""
Shared error handling for the permissions engine.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: str
    message: str
    details: Dict[str, Any] = {}


class PermissionsException(Exception):
    """Base exception for the permissions engine."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            code=self.code,
            message=self.message,
            details=self.details
        )


class AuthorizationError(PermissionsException):
    """Authorization-related errors."""

    def __init__(self, message: str = "Authorization failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("AUTHORIZATION_ERROR", message, details)


class ValidationError(PermissionsException):
    """Validation-related errors."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class ConditionRegistryError(ValidationError):
    """Condition registry misconfiguration."""

    def __init__(self, message: str = "Invalid condition registry operation", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.code = "CONDITION_REGISTRY_ERROR"
