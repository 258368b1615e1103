"""Error handling utilities for the claims intake pipeline."""

from dataclasses import dataclass
from typing import Optional, Dict, Any
from enum import Enum


class ErrorType(Enum):
    """Enumeration of error types in the claims intake pipeline."""

    # Input errors
    INVALID_INPUT = "INVALID_INPUT"

    # AI transport errors
    AI_NETWORK_ERROR = "AI_NETWORK_ERROR"
    AI_AUTH_ERROR = "AI_AUTH_ERROR"
    AI_RATE_LIMIT = "AI_RATE_LIMIT"
    AI_PROVIDER_ERROR = "AI_PROVIDER_ERROR"
    AI_NOT_CONFIGURED = "AI_NOT_CONFIGURED"

    # AI output errors
    RESPONSE_PARSE_FAILED = "RESPONSE_PARSE_FAILED"
    RESPONSE_SHAPE_INVALID = "RESPONSE_SHAPE_INVALID"

    # Document processing errors
    UNSUPPORTED_FORMAT = "UNSUPPORTED_FORMAT"
    TEXT_EXTRACTION_FAILED = "TEXT_EXTRACTION_FAILED"
    LIBRARY_LOAD_FAILED = "LIBRARY_LOAD_FAILED"

    # Persistence errors
    PERSISTENCE_FAILED = "PERSISTENCE_FAILED"

    # Stage errors
    STAGE_TIMEOUT = "STAGE_TIMEOUT"

    # Configuration errors
    CONFIG_INVALID = "CONFIG_INVALID"

    # System errors
    INITIALIZATION_FAILED = "INITIALIZATION_FAILED"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


@dataclass
class ErrorContext:
    """
    Context information for errors in the claims intake pipeline.

    Attributes:
        error_type: Type of error from ErrorType enum
        message: Human-readable error message
        recoverable: Whether the pipeline can continue with a fallback
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
        """
        Convert error context to dictionary for logging/serialization.

        Returns:
            Dictionary representation of error context
        """
        return {
            "error_type": self.error_type.value,
            "message": self.message,
            "recoverable": self.recoverable,
            "fallback_action": self.fallback_action,
            "details": self.details or {},
            "original_exception": str(self.original_exception) if self.original_exception else None
        }


class ClaimsProcessingError(Exception):
    """
    Base exception for all claims intake errors.

    The message is meant to be shown to users as-is, so it never carries
    provider jargon or stack traces; those live in ``context.details``.

    Attributes:
        context: ErrorContext with detailed error information
    """

    def __init__(self, context: ErrorContext):
        self.context = context
        super().__init__(context.message)

    @property
    def error_type(self) -> ErrorType:
        return self.context.error_type

    def __str__(self) -> str:
        return self.context.message

    def to_dict(self) -> Dict[str, Any]:
        return self.context.to_dict()


class InputValidationError(ClaimsProcessingError):
    """Raised for empty or malformed input that must never reach the AI client."""

    @classmethod
    def invalid(cls, message: str, field: Optional[str] = None) -> "InputValidationError":
        return cls(
            ErrorContext(
                error_type=ErrorType.INVALID_INPUT,
                message=message,
                recoverable=False,
                details={"field": field} if field else None,
            )
        )


class AIClientError(ClaimsProcessingError):
    """Exception for generative-AI transport failures."""

    USER_MESSAGES = {
        ErrorType.AI_NETWORK_ERROR: "Network error: Unable to connect to the AI service. Check your internet connection.",
        ErrorType.AI_AUTH_ERROR: "Authentication failed: Please check your AI service API key or credentials.",
        ErrorType.AI_RATE_LIMIT: "Rate limit exceeded: The AI service is busy, please try again later.",
        ErrorType.AI_PROVIDER_ERROR: "The AI service returned an error and could not complete the request.",
        ErrorType.AI_NOT_CONFIGURED: "AI processing is disabled: no AI service API key is configured.",
    }

    @property
    def retryable(self) -> bool:
        return self.context.error_type in (ErrorType.AI_NETWORK_ERROR, ErrorType.AI_RATE_LIMIT) or bool(
            (self.context.details or {}).get("retryable")
        )

    @classmethod
    def of_type(
        cls,
        error_type: ErrorType,
        operation: str,
        error: Optional[Exception] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> "AIClientError":
        """
        Create an AIClientError carrying the user-facing message for its type.

        Args:
            error_type: One of the AI_* error types
            operation: Description of the operation that failed
            error: Optional original exception
            details: Optional extra diagnostic details

        Returns:
            AIClientError instance
        """
        merged = {"operation": operation}
        merged.update(details or {})
        return cls(
            ErrorContext(
                error_type=error_type,
                message=cls.USER_MESSAGES.get(error_type, cls.USER_MESSAGES[ErrorType.AI_PROVIDER_ERROR]),
                recoverable=error_type in (ErrorType.AI_NETWORK_ERROR, ErrorType.AI_RATE_LIMIT),
                details=merged,
                original_exception=error,
            )
        )

    @classmethod
    def from_client_error(cls, error: Exception, operation: str) -> "AIClientError":
        """
        Classify a botocore ClientError by error code and HTTP status.

        Args:
            error: Original botocore ClientError
            operation: Description of operation that failed

        Returns:
            AIClientError instance
        """
        response = getattr(error, "response", None) or {}
        error_info = response.get("Error", {})
        error_code = error_info.get("Code", "Unknown")
        status = response.get("ResponseMetadata", {}).get("HTTPStatusCode")

        auth_codes = {
            "UnauthorizedException",
            "AccessDeniedException",
            "UnrecognizedClientException",
            "InvalidSignatureException",
            "ExpiredTokenException",
        }
        rate_codes = {"ThrottlingException", "TooManyRequestsException"}
        transient_codes = {
            "ServiceUnavailableException",
            "InternalServerException",
            "ModelNotReadyException",
        }

        if error_code in auth_codes or status in (401, 403):
            error_type = ErrorType.AI_AUTH_ERROR
        elif error_code in rate_codes or status == 429:
            error_type = ErrorType.AI_RATE_LIMIT
        else:
            error_type = ErrorType.AI_PROVIDER_ERROR

        return cls.of_type(
            error_type,
            operation=operation,
            error=error,
            details={
                "error_code": error_code,
                "status_code": status,
                "provider_message": error_info.get("Message", str(error)),
                "retryable": error_code in transient_codes,
            },
        )


class ResponseParseError(ClaimsProcessingError):
    """Raised when every JSON recovery strategy failed on an AI response."""

    @classmethod
    def exhausted(cls, attempts: list, content: str) -> "ResponseParseError":
        last_error = attempts[-1]["error"] if attempts else "Unknown error"
        return cls(
            ErrorContext(
                error_type=ErrorType.RESPONSE_PARSE_FAILED,
                message=(
                    f"Failed to parse AI response as JSON after {len(attempts)} attempts. "
                    f"Last error: {last_error}"
                ),
                recoverable=False,
                details={
                    "attempts": attempts,
                    "content_length": len(content or ""),
                    "head": (content or "")[:200],
                    "tail": (content or "")[-200:],
                },
            )
        )


class StageValidationError(ClaimsProcessingError):
    """Raised when a parsed AI response does not have the shape a stage requires."""

    @classmethod
    def missing_fields(cls, stage: str, fields: list) -> "StageValidationError":
        return cls(
            ErrorContext(
                error_type=ErrorType.RESPONSE_SHAPE_INVALID,
                message=f"Invalid {stage} structure: missing {', '.join(fields)}",
                recoverable=False,
                details={"stage": stage, "missing": fields},
            )
        )

    @classmethod
    def invalid(cls, stage: str, reason: str) -> "StageValidationError":
        return cls(
            ErrorContext(
                error_type=ErrorType.RESPONSE_SHAPE_INVALID,
                message=f"Invalid {stage} structure: {reason}",
                recoverable=False,
                details={"stage": stage},
            )
        )


class DocumentProcessingError(ClaimsProcessingError):
    """Exception for document text extraction errors."""

    @classmethod
    def unsupported_format(cls, filename: str, media_type: str) -> "DocumentProcessingError":
        """
        Create error for a file type the extractor cannot handle.

        Args:
            filename: Name of the uploaded file
            media_type: Declared media type (may be empty)

        Returns:
            DocumentProcessingError instance
        """
        return cls(
            ErrorContext(
                error_type=ErrorType.UNSUPPORTED_FORMAT,
                message=f"Unsupported file format: {media_type or 'unknown'} ({filename})",
                recoverable=False,
                details={"filename": filename, "media_type": media_type},
            )
        )

    @classmethod
    def extraction_failed(
        cls,
        filename: str,
        doc_type: str,
        error: Exception,
        fallback_action: Optional[str] = None
    ) -> "DocumentProcessingError":
        """
        Create error for a per-format extraction failure.

        Args:
            filename: Name of the file
            doc_type: Format that was being extracted ('pdf', 'word', 'image', ...)
            error: Original exception
            fallback_action: Optional fallback action

        Returns:
            DocumentProcessingError instance
        """
        return cls(
            ErrorContext(
                error_type=ErrorType.TEXT_EXTRACTION_FAILED,
                message=f"Failed to extract text from {doc_type} file '{filename}': {str(error)}",
                recoverable=True,
                fallback_action=fallback_action or "Continue with the remaining documents",
                details={"filename": filename, "doc_type": doc_type},
                original_exception=error,
            )
        )

    @classmethod
    def library_unavailable(cls, library: str, error: Exception) -> "DocumentProcessingError":
        return cls(
            ErrorContext(
                error_type=ErrorType.LIBRARY_LOAD_FAILED,
                message=f"Document library '{library}' could not be loaded: {str(error)}",
                recoverable=False,
                details={"library": library},
                original_exception=error,
            )
        )


class PersistenceError(ClaimsProcessingError):
    """Exception for record store failures."""

    @classmethod
    def create_failed(cls, collection: str, record_id: str, error: Exception) -> "PersistenceError":
        return cls(
            ErrorContext(
                error_type=ErrorType.PERSISTENCE_FAILED,
                message=f"Claim was processed but could not be saved to '{collection}': {str(error)}",
                recoverable=True,
                fallback_action="Result kept in memory only",
                details={"collection": collection, "record_id": record_id},
                original_exception=error,
            )
        )


def handle_document_processing_error(
    error: Exception,
    filename: str,
    doc_type: str,
    logger,
    fallback_action: Optional[str] = None
) -> None:
    """
    Log a document processing failure and raise it wrapped with context.

    Args:
        error: Original exception from document processing
        filename: Name of file being processed
        doc_type: Type of document ('pdf', 'word', 'image', ...)
        logger: Logger instance for error logging
        fallback_action: Optional fallback action description

    Raises:
        DocumentProcessingError: Wrapped error with context
    """
    if isinstance(error, DocumentProcessingError):
        raise error

    doc_error = DocumentProcessingError.extraction_failed(
        filename=filename,
        doc_type=doc_type,
        error=error,
        fallback_action=fallback_action
    )
    logger.warning(f"Document processing error: {doc_error}")
    raise doc_error from error
