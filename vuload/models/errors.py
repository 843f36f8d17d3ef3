"""Error models and exception classes for the load engine."""

import time
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ErrorType(str, Enum):
    """Error type enumeration."""

    TRANSPORT = "transport_error"
    DEPENDENCY_MISSING = "dependency_missing"
    MALFORMED_RESPONSE = "malformed_response"
    CHECK_ERROR = "check_error"
    CONFIGURATION = "configuration_error"


class ErrorDetail(BaseModel):
    """Detailed error information."""

    field: Optional[str] = Field(None, description="Field name for validation errors")
    message: str = Field(..., description="Human-readable error message")
    code: Optional[str] = Field(None, description="Machine-readable error code")


class ErrorReport(BaseModel):
    """Serializable form of an engine error."""

    error: str = Field(..., description="Main error message")
    error_type: ErrorType = Field(..., description="Error category")
    details: Optional[List[ErrorDetail]] = Field(
        None, description="Additional error details"
    )
    timestamp: float = Field(default_factory=time.time, description="Error timestamp")

    class Config:
        use_enum_values = True


# Custom Exception Classes


class LoadEngineException(Exception):
    """Base exception for the load engine."""

    error_type: ErrorType = ErrorType.CHECK_ERROR

    def __init__(
        self,
        message: str,
        error_type: Optional[ErrorType] = None,
        details: Optional[List[ErrorDetail]] = None,
    ):
        self.message = message
        if error_type is not None:
            self.error_type = error_type
        self.details = details or []
        super().__init__(message)

    def to_report(self) -> ErrorReport:
        """Convert exception to an error report model."""
        return ErrorReport(
            error=self.message,
            error_type=self.error_type,
            details=self.details if self.details else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return self.to_report().model_dump(exclude_none=True)


class TransportError(LoadEngineException):
    """Connection, protocol or timeout failure talking to the target."""

    error_type = ErrorType.TRANSPORT

    def __init__(self, message: str = "Transport failure", timeout: bool = False, **kwargs):
        self.timeout = timeout
        super().__init__(message=message, **kwargs)


class DependencyMissing(LoadEngineException):
    """A field required by a later step is absent from a prior response."""

    error_type = ErrorType.DEPENDENCY_MISSING

    def __init__(self, dependency: str, step: str = "", **kwargs):
        self.dependency = dependency
        self.step = step
        message = f"Required field '{dependency}' missing"
        if step:
            message += f" for {step}"
        super().__init__(message=message, **kwargs)


class MalformedResponse(LoadEngineException):
    """Response body could not be parsed."""

    error_type = ErrorType.MALFORMED_RESPONSE

    def __init__(self, message: str = "Response body is not valid JSON", **kwargs):
        super().__init__(message=message, **kwargs)


class ConfigurationError(LoadEngineException):
    """Invalid scenario or engine configuration. Fatal at load time."""

    error_type = ErrorType.CONFIGURATION

    def __init__(self, message: str = "Invalid configuration", **kwargs):
        super().__init__(message=message, **kwargs)
