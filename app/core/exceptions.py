from typing import Dict, List, Optional

from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ValidationError(ServiceError):
    """Required-field or shape rules unmet. `errors` maps field name to message."""

    def __init__(self, errors: Dict[str, str], message: str = "Validation failed") -> None:
        super().__init__(message, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.errors = errors


class BusinessRuleError(ServiceError):
    """One or more cross-field rules violated; all violations are reported together."""

    def __init__(self, messages: List[str]) -> None:
        super().__init__("; ".join(messages), status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.messages = messages


class ConflictError(ServiceError):
    """Unique value already taken (class code)."""

    def __init__(self, message: str = "Class code already exists", field: Optional[str] = "class_code") -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)
        self.field = field


class NotFoundError(ServiceError):
    def __init__(self, message: str = "Class not found") -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class StorageError(ServiceError):
    """Any other persistence failure. `message` is safe to show to clients."""

    def __init__(self, message: str = "Storage operation failed") -> None:
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR)
