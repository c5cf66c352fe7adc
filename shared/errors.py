"""
Shared error handling for the compliance service.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from shared.logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class ComplianceException(Exception):
    """Base exception for compliance service errors.

    ``status_code`` is the HTTP status the base service answers with.
    """

    status_code = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id_var.get(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class ValidationError(ComplianceException):
    """Validation-related errors."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class InvalidPayloadError(ComplianceException):
    """Request payload could not be converted to domain objects."""

    def __init__(self, message: str = "Invalid payload", details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_PAYLOAD", message, details)


class SchemaDefinitionError(ComplianceException):
    """Property schema definition is inconsistent."""

    status_code = 500

    def __init__(self, message: str = "Invalid property schema", details: Optional[Dict[str, Any]] = None):
        super().__init__("SCHEMA_DEFINITION_ERROR", message, details)


class ServiceError(ComplianceException):
    """Service-side failures, reported as server errors."""

    status_code = 500

    def __init__(self, message: str = "Service error", details: Optional[Dict[str, Any]] = None):
        super().__init__("SERVICE_ERROR", message, details)
