"""
Exception classes for btschema.
"""

from typing import Any, Dict, Optional


class BtSchemaError(Exception):
    """Base exception for all btschema errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        result = self.message
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            result += f" [{details_str}]"
        if self.cause:
            result += f" (caused by: {self.cause})"
        return result


class ConfigurationError(BtSchemaError):
    """Raised when there's an error in configuration."""

    pass


class ValidationError(BtSchemaError):
    """Raised when an argument or identifier is malformed."""

    pass


class AdminError(BtSchemaError):
    """Raised when a table administration call fails."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        resource: Optional[str] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        details = {}
        if operation:
            details["operation"] = operation
        if resource:
            details["resource"] = resource

        super().__init__(message, details, cause)
        self.operation = operation
        self.resource = resource


class AdminConnectionError(AdminError):
    """Raised when an admin session cannot be opened."""

    pass


class AdminAlreadyExistsError(AdminError):
    """Raised when a create call targets a table or family that already exists."""

    pass


class AdminNotFoundError(AdminError):
    """Raised when the target table or instance does not exist."""

    pass


class AdminPermissionError(AdminError):
    """Raised when the caller lacks permission for an admin call."""

    pass
