"""
Custom exceptions for Scriber application.
Defines specific exception types for different error scenarios.
"""


class ScriberError(Exception):
    """Base exception for Scriber application."""

    status_code = 400

    def __init__(self, message: str, error_code: str = None, details: dict = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "GENERAL_ERROR"
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert exception to dictionary format."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class NotFoundError(ScriberError):
    """Exception raised when a resource is missing or not owned by the caller."""

    status_code = 404

    def __init__(self, message: str, resource: str = None, details: dict = None):
        if details is None:
            details = {}
        if resource:
            details["resource"] = resource
        super().__init__(message, "NOT_FOUND", details)


class ForbiddenError(ScriberError):
    """Exception raised for authorization errors."""

    status_code = 403

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, "FORBIDDEN", details)


class ValidationError(ScriberError):
    """Exception raised for data validation errors."""

    def __init__(self, message: str, field: str = None, details: dict = None):
        if details is None:
            details = {}
        if field:
            details["field"] = field
        super().__init__(message, "VALIDATION_ERROR", details)


class ConflictError(ScriberError):
    """Exception raised when a unique resource already exists."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, "CONFLICT", details)


class AuthenticationError(ScriberError):
    """Exception raised for authentication errors."""

    status_code = 401

    def __init__(self, message: str = "Could not validate credentials", details: dict = None):
        super().__init__(message, "AUTHENTICATION_ERROR", details)


class UsageLimitError(ScriberError):
    """Exception raised when a plan limit blocks an upload."""

    status_code = 403

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, "USAGE_LIMIT_EXCEEDED", details)


class FileUploadError(ScriberError):
    """Exception raised for file upload errors."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, "FILE_UPLOAD_ERROR", details)


class AudioProcessingError(ScriberError):
    """Exception raised for audio processing errors."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, "AUDIO_PROCESSING_ERROR", details)


class TranscriptionError(ScriberError):
    """Exception raised for transcription errors."""

    status_code = 500

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, "TRANSCRIPTION_ERROR", details)


class MinutesError(ScriberError):
    """Exception raised for minutes generation errors."""

    status_code = 500

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, "MINUTES_ERROR", details)


class ExportError(ScriberError):
    """Exception raised for export generation errors."""

    status_code = 500

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, "EXPORT_ERROR", details)


class QueueError(ScriberError):
    """Exception raised for queue management errors."""

    status_code = 500

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, "QUEUE_ERROR", details)


class ConfigurationError(ScriberError):
    """Exception raised for configuration errors."""

    status_code = 500

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, "CONFIGURATION_ERROR", details)


class ExternalServiceError(ScriberError):
    """Exception raised when external services are unavailable."""

    status_code = 502

    def __init__(self, message: str, service_name: str = None, details: dict = None):
        if details is None:
            details = {}
        if service_name:
            details["service_name"] = service_name
        super().__init__(message, "EXTERNAL_SERVICE_ERROR", details)
