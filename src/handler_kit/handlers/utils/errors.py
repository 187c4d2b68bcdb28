"""
Error taxonomy and error shaping utilities for wrapped handlers.

Configuration problems surface while the pipeline is assembled and are fatal;
validation and business failures are captured per invocation and shaped into
HTTP responses (or re-raised for non-HTTP triggers); an invariant error means
the pipeline itself is broken and always escapes the wrapper.
"""

import json
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from aws_lambda_powertools.metrics import MetricUnit
from pydantic import ValidationError as PydanticValidationError

from handler_kit.handlers.utils.observability import logger, metrics, tracer
from handler_kit.models.output import ErrorDetailOutput, ErrorOutput, FieldErrorOutput


class ErrorSeverity(str, Enum):
    """Error severity levels for classification."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class ErrorCategory(str, Enum):
    """Error categories for classification."""
    VALIDATION = "VALIDATION"
    BUSINESS_LOGIC = "BUSINESS_LOGIC"
    CONFIGURATION = "CONFIGURATION"
    INTERNAL = "INTERNAL"


class BaseServiceError(Exception):
    """Base exception class for handler kit errors."""

    def __init__(
        self,
        message: str,
        error_code: str,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.BUSINESS_LOGIC,
        status_code: Optional[int] = None,
        user_message: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.severity = severity
        self.category = category
        self.status_code = status_code
        self.user_message = user_message or "An error occurred while processing your request."
        self.error_id = str(uuid.uuid4())

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging."""
        return {
            "error_id": self.error_id,
            "error_code": self.error_code,
            "message": self.message,
            "user_message": self.user_message,
            "severity": self.severity.value,
            "category": self.category.value,
            "status_code": self.status_code,
        }


class ConfigurationError(BaseServiceError):
    """Raised while assembling a pipeline; never raised per invocation."""

    def __init__(self, message: str, invariant: Optional[str] = None):
        super().__init__(
            message=message,
            error_code="CONFIGURATION_ERROR",
            severity=ErrorSeverity.CRITICAL,
            category=ErrorCategory.CONFIGURATION,
            status_code=500,
        )
        self.invariant = invariant


class ValidationError(BaseServiceError):
    """Raised when an event or a response fails its declared schema."""

    def __init__(
        self,
        message: str,
        source: str = "event",
        field_errors: Optional[List[Dict[str, str]]] = None,
        expose: bool = False,
    ):
        is_event = source == "event"
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR" if is_event else "RESPONSE_VALIDATION_ERROR",
            severity=ErrorSeverity.LOW if is_event else ErrorSeverity.HIGH,
            category=ErrorCategory.VALIDATION,
            status_code=400 if is_event else 500,
            user_message=(
                "Invalid input provided. Please check your request and try again."
                if is_event
                else "The service produced an invalid response."
            ),
        )
        self.source = source
        self.field_errors = field_errors or []
        # response issues are only shown to callers when explicitly exposed
        self.expose = expose or is_event

    @classmethod
    def from_pydantic(cls, exc: PydanticValidationError, source: str, expose: bool = False) -> 'ValidationError':
        """Build from a pydantic validation failure, keeping its issues."""
        error = cls(
            message=f"Invalid {source}",
            source=source,
            field_errors=field_errors_from(exc),
            expose=expose,
        )
        error.__cause__ = exc
        return error


class BusinessError(BaseServiceError):
    """Raised by business functions; `status_code` is an optional status hint."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: str = "BUSINESS_ERROR",
        user_message: Optional[str] = None,
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            severity=ErrorSeverity.MEDIUM,
            category=ErrorCategory.BUSINESS_LOGIC,
            status_code=status_code,
            user_message=user_message or message,
        )


class InternalInvariantError(BaseServiceError):
    """The pipeline finished without a response and without a mapped error."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            error_code="INTERNAL_INVARIANT_ERROR",
            severity=ErrorSeverity.CRITICAL,
            category=ErrorCategory.INTERNAL,
            status_code=500,
        )


def field_errors_from(exc: PydanticValidationError) -> List[Dict[str, str]]:
    """Flatten pydantic issues into field/message/type dictionaries."""
    return [
        {
            "field": ".".join(str(part) for part in error["loc"]) or "$",
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]


def status_hint(error: BaseException) -> Optional[int]:
    """Return a recognized HTTP status hint carried by an exception, if any."""
    hint = getattr(error, "status_code", None)
    if isinstance(hint, bool) or not isinstance(hint, int):
        return None
    if 400 <= hint <= 599:
        return hint
    return None


def get_http_status_code(error: BaseException) -> int:
    """Get appropriate HTTP status code for error."""

    status_mapping = {
        "VALIDATION_ERROR": 400,
        "RESPONSE_VALIDATION_ERROR": 500,
        "CONFIGURATION_ERROR": 500,
        "INTERNAL_INVARIANT_ERROR": 500,
    }

    hint = status_hint(error)
    if hint is not None:
        return hint
    if isinstance(error, BaseServiceError):
        return status_mapping.get(error.error_code, 500)
    return 500


@tracer.capture_method
def log_error_metrics(error: BaseException) -> None:
    """Log error metrics for monitoring and alerting."""

    metrics.add_metric(name="HandlerError", unit=MetricUnit.Count, value=1)

    if isinstance(error, BaseServiceError):
        metrics.add_metric(name=f"Error{error.category.value}Count", unit=MetricUnit.Count, value=1)
        tracer.put_annotation("error_code", error.error_code)
        tracer.put_metadata("error_details", error.to_dict())
        logger.error(
            "Handler error occurred",
            extra={
                "error_id": error.error_id,
                "error_code": error.error_code,
                "error_severity": error.severity.value,
                "error_category": error.category.value,
                "error_message": error.message,
            },
        )
        return

    logger.error(
        "Unhandled error in business function",
        extra={"error_type": type(error).__name__, "error": str(error)},
    )


def format_error_response(
    error: BaseException,
    include_details: bool = False,
) -> Dict[str, Any]:
    """Format error for API response."""

    status_code = get_http_status_code(error)

    if isinstance(error, BaseServiceError):
        code = error.error_code
        message = error.user_message
        error_id = error.error_id
    elif status_code < 500:
        # client errors raised with a status hint are safe to echo back
        code = getattr(error, "error_code", None) or f"HTTP_{status_code}"
        message = getattr(error, "msg", None) or str(error)
        error_id = str(uuid.uuid4())
    else:
        code = "INTERNAL_SERVER_ERROR"
        message = "An unexpected error occurred"
        error_id = str(uuid.uuid4())

    detail = ErrorDetailOutput(
        code=code,
        message=message,
        error_id=error_id,
        timestamp=datetime.now(timezone.utc),
    )

    if isinstance(error, ValidationError) and error.field_errors and (error.expose or include_details):
        detail.field_errors = [FieldErrorOutput(**field_error) for field_error in error.field_errors]

    if include_details:
        detail.details = {
            "error_type": type(error).__name__,
            "message": str(error),
        }

    return ErrorOutput(error=detail).model_dump(mode="json", exclude_none=True)


def create_api_response(
    status_code: int,
    body: Any,
    content_type: str = "application/json",
    headers: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """Create a shaped API Gateway response."""

    default_headers = {"Content-Type": content_type}

    if headers:
        default_headers.update(headers)

    return {
        "statusCode": status_code,
        "headers": default_headers,
        "body": body if isinstance(body, str) else json.dumps(body),
    }
