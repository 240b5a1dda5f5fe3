"""Error handling utilities for the damage triage system."""

from dataclasses import dataclass
from typing import Optional, Dict, Any
from enum import Enum


class ErrorType(Enum):
    """Enumeration of error types in the damage triage system."""

    # Bedrock API Errors
    BEDROCK_RATE_LIMIT = "BEDROCK_RATE_LIMIT"
    BEDROCK_TIMEOUT = "BEDROCK_TIMEOUT"
    BEDROCK_AUTH_ERROR = "BEDROCK_AUTH_ERROR"
    BEDROCK_MODEL_ERROR = "BEDROCK_MODEL_ERROR"
    BEDROCK_INVALID_REQUEST = "BEDROCK_INVALID_REQUEST"
    BEDROCK_SERVICE_ERROR = "BEDROCK_SERVICE_ERROR"

    # Upstream payload errors
    UPSTREAM_INVALID_JSON = "UPSTREAM_INVALID_JSON"
    MALFORMED_ASSESSMENT = "MALFORMED_ASSESSMENT"

    # Image input errors
    MISSING_IMAGE = "MISSING_IMAGE"
    INVALID_IMAGE = "INVALID_IMAGE"
    INVALID_IMAGE_URL = "INVALID_IMAGE_URL"

    # Configuration Errors
    CONFIG_INVALID = "CONFIG_INVALID"

    # General Errors
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


@dataclass
class ErrorContext:
    """
    Context information for errors in the damage triage system.

    Attributes:
        error_type: Type of error from ErrorType enum
        message: Human-readable error message
        recoverable: Whether the error can be recovered from
        fallback_action: Optional description of fallback action taken
        details: Optional additional error details
        original_exception: Optional original exception that caused this error
    """

    error_type: ErrorType
    message: str
    recoverable: bool
    fallback_action: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    original_exception: Optional[Exception] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert error context to dictionary for logging/serialization."""
        return {
            "error_type": self.error_type.value,
            "message": self.message,
            "recoverable": self.recoverable,
            "fallback_action": self.fallback_action,
            "details": self.details or {},
            "original_exception": str(self.original_exception) if self.original_exception else None
        }


class AssessmentError(Exception):
    """
    Base exception for all damage assessment errors.

    Wraps errors with an ErrorContext so the HTTP layer can report
    distinct failure conditions to the caller.

    Attributes:
        context: ErrorContext with detailed error information
    """

    def __init__(self, context: ErrorContext):
        self.context = context
        super().__init__(context.message)

    def __str__(self) -> str:
        base = f"{self.context.error_type.value}: {self.context.message}"
        if self.context.fallback_action:
            base += f" (Fallback: {self.context.fallback_action})"
        return base

    def to_dict(self) -> Dict[str, Any]:
        return self.context.to_dict()


class MalformedAssessmentError(AssessmentError):
    """Raised when the damage item container itself is not a sequence."""

    @classmethod
    def not_a_sequence(cls, value: Any) -> "MalformedAssessmentError":
        context = ErrorContext(
            error_type=ErrorType.MALFORMED_ASSESSMENT,
            message=f"Expected a sequence of damage observations, got {type(value).__name__}",
            recoverable=False,
            details={"received_type": type(value).__name__}
        )
        return cls(context)


class ConfigurationError(AssessmentError):
    """Exception for invalid or inconsistent configuration."""

    @classmethod
    def invalid(cls, message: str, **details: Any) -> "ConfigurationError":
        context = ErrorContext(
            error_type=ErrorType.CONFIG_INVALID,
            message=message,
            recoverable=False,
            details=details or None
        )
        return cls(context)


class BedrockAPIError(AssessmentError):
    """Exception for AWS Bedrock API errors."""

    @classmethod
    def from_client_error(
        cls,
        error: Exception,
        operation: str,
        recoverable: bool = False,
        fallback_action: Optional[str] = None
    ) -> "BedrockAPIError":
        """
        Create BedrockAPIError from boto3 ClientError.

        Args:
            error: Original boto3 ClientError
            operation: Description of operation that failed
            recoverable: Whether error is recoverable
            fallback_action: Optional fallback action description

        Returns:
            BedrockAPIError instance
        """
        error_code = "Unknown"
        error_message = str(error)

        if hasattr(error, 'response'):
            error_info = error.response.get("Error", {})
            error_code = error_info.get("Code", "Unknown")
            error_message = error_info.get("Message", str(error))

        error_type_map = {
            "ThrottlingException": ErrorType.BEDROCK_RATE_LIMIT,
            "TooManyRequestsException": ErrorType.BEDROCK_RATE_LIMIT,
            "RequestTimeout": ErrorType.BEDROCK_TIMEOUT,
            "RequestTimeoutException": ErrorType.BEDROCK_TIMEOUT,
            "UnauthorizedException": ErrorType.BEDROCK_AUTH_ERROR,
            "AccessDeniedException": ErrorType.BEDROCK_AUTH_ERROR,
            "ValidationException": ErrorType.BEDROCK_INVALID_REQUEST,
            "ModelNotReadyException": ErrorType.BEDROCK_MODEL_ERROR,
            "ModelTimeoutException": ErrorType.BEDROCK_TIMEOUT,
            "ServiceUnavailableException": ErrorType.BEDROCK_SERVICE_ERROR,
            "InternalServerException": ErrorType.BEDROCK_SERVICE_ERROR,
        }

        error_type = error_type_map.get(error_code, ErrorType.BEDROCK_SERVICE_ERROR)

        context = ErrorContext(
            error_type=error_type,
            message=f"Bedrock API error during {operation}: {error_message}",
            recoverable=recoverable,
            fallback_action=fallback_action,
            details={
                "error_code": error_code,
                "operation": operation
            },
            original_exception=error
        )

        return cls(context)


class UpstreamResponseError(AssessmentError):
    """Exception for structurally unusable responses from the vision model."""

    @classmethod
    def invalid_json(cls, source: str, text: str) -> "UpstreamResponseError":
        """
        Create error for a model response that holds no JSON object.

        Args:
            source: Name of the upstream collaborator
            text: Raw response text (truncated in details)

        Returns:
            UpstreamResponseError instance
        """
        context = ErrorContext(
            error_type=ErrorType.UPSTREAM_INVALID_JSON,
            message=f"{source} returned invalid JSON",
            recoverable=False,
            details={"source": source, "preview": text[:200]}
        )
        return cls(context)


class ImageInputError(AssessmentError):
    """Exception for unusable image input supplied by the caller."""

    @classmethod
    def missing(cls) -> "ImageInputError":
        return cls(ErrorContext(
            error_type=ErrorType.MISSING_IMAGE,
            message="No file or imageUrl provided",
            recoverable=False
        ))

    @classmethod
    def invalid_url(cls, url: str, reason: str = "Invalid imageUrl") -> "ImageInputError":
        return cls(ErrorContext(
            error_type=ErrorType.INVALID_IMAGE_URL,
            message=reason,
            recoverable=False,
            details={"image_url": url[:200]}
        ))

    @classmethod
    def invalid_image(cls, filename: str, error: Exception) -> "ImageInputError":
        return cls(ErrorContext(
            error_type=ErrorType.INVALID_IMAGE,
            message="Invalid image file",
            recoverable=False,
            details={"filename": filename},
            original_exception=error
        ))
