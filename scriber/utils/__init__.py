"""
Utilities package for Scriber.
Contains utility functions, exceptions, and helper modules.
"""

from .exceptions import (
    ScriberError,
    NotFoundError,
    ForbiddenError,
    ValidationError,
    ConflictError,
    AuthenticationError,
    UsageLimitError,
    TranscriptionError,
    ExportError,
    QueueError,
    ExternalServiceError,
)

__all__ = [
    "ScriberError",
    "NotFoundError",
    "ForbiddenError",
    "ValidationError",
    "ConflictError",
    "AuthenticationError",
    "UsageLimitError",
    "TranscriptionError",
    "ExportError",
    "QueueError",
    "ExternalServiceError",
]
