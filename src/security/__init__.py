"""
Security module for the task distribution service.

Provides the API error taxonomy and upload validation.
"""

from .api_errors import (
    APIError,
    ErrorCode,
    ValidationError,
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    UnexpectedError,
    register_exception_handlers,
)
from .file_upload_security import SecureUpload, sanitize_filename, validate_upload

__all__ = [
    "APIError",
    "ErrorCode",
    "ValidationError",
    "AuthenticationError",
    "AuthorizationError",
    "NotFoundError",
    "UnexpectedError",
    "register_exception_handlers",
    "SecureUpload",
    "sanitize_filename",
    "validate_upload",
]
