"""
Unified API Error Response System.

Every failure leaving the service is one of five kinds:

- ValidationError      (400) malformed or missing input
- AuthenticationError  (401) missing, invalid or expired credential
- AuthorizationError   (403) valid credential, insufficient role or ownership
- NotFoundError        (404) referenced entity absent
- UnexpectedError      (500) persistence or parsing failure; logged with
                             full detail, the client sees a generic message

All error bodies carry a human-readable ``message``.

Usage:
    from security.api_errors import NotFoundError

    raise NotFoundError("Task not found")
"""

from __future__ import annotations

import logging
import traceback
import uuid
from enum import Enum
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

GENERIC_SERVER_MESSAGE = "Server error"


# =============================================================================
# ERROR CODES
# =============================================================================


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    AUTH_REQUIRED = "AUTH_REQUIRED"
    AUTH_INVALID_TOKEN = "AUTH_INVALID_TOKEN"
    AUTH_INVALID_CREDENTIALS = "AUTH_INVALID_CREDENTIALS"
    AUTH_INSUFFICIENT_PERMISSIONS = "AUTH_INSUFFICIENT_PERMISSIONS"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    SERVER_INTERNAL_ERROR = "SERVER_INTERNAL_ERROR"


ERROR_CODE_STATUS_MAP: Dict[ErrorCode, int] = {
    ErrorCode.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorCode.AUTH_REQUIRED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.AUTH_INVALID_TOKEN: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.AUTH_INVALID_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.AUTH_INSUFFICIENT_PERMISSIONS: status.HTTP_403_FORBIDDEN,
    ErrorCode.RESOURCE_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.SERVER_INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

_STATUS_CODE_MAP: Dict[int, ErrorCode] = {
    400: ErrorCode.VALIDATION_ERROR,
    401: ErrorCode.AUTH_REQUIRED,
    403: ErrorCode.AUTH_INSUFFICIENT_PERMISSIONS,
    404: ErrorCode.RESOURCE_NOT_FOUND,
}


# =============================================================================
# ERROR RESPONSE MODELS
# =============================================================================


class FieldError(BaseModel):
    """Individual field validation error."""
    field: str = Field(..., description="Field name that caused the error")
    message: str = Field(..., description="Error message for this field")
    code: str = Field(default="invalid", description="Error code for this field")


class ErrorResponse(BaseModel):
    """Standardized API error response."""
    message: str = Field(..., description="Human-readable error message")
    code: str = Field(..., description="Error code from ErrorCode enum")
    request_id: str = Field(..., description="Unique request identifier for tracking")
    field_errors: Optional[List[FieldError]] = Field(None, description="Field-specific validation errors")


# =============================================================================
# API ERROR EXCEPTIONS
# =============================================================================


class APIError(Exception):
    """
    Base exception for API errors.

    Raise anywhere below a route to return a standardized error response.
    """

    default_code: ErrorCode = ErrorCode.SERVER_INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        field_errors: Optional[List[Dict[str, str]]] = None,
    ):
        self.code = code or self.default_code
        self.message = message
        self.status_code = status_code or ERROR_CODE_STATUS_MAP.get(
            self.code, status.HTTP_500_INTERNAL_SERVER_ERROR
        )
        self.details = details
        self.field_errors = field_errors
        super().__init__(message)

    def to_response(self, request_id: str) -> ErrorResponse:
        """Convert to ErrorResponse model."""
        field_error_models = None
        if self.field_errors:
            field_error_models = [
                FieldError(
                    field=fe.get("field", "unknown"),
                    message=fe.get("message", "Invalid value"),
                    code=fe.get("code", "invalid"),
                )
                for fe in self.field_errors
            ]
        return ErrorResponse(
            message=self.message,
            code=self.code.value,
            request_id=request_id,
            field_errors=field_error_models,
        )


class ValidationError(APIError):
    default_code = ErrorCode.VALIDATION_ERROR


class AuthenticationError(APIError):
    default_code = ErrorCode.AUTH_REQUIRED


class AuthorizationError(APIError):
    default_code = ErrorCode.AUTH_INSUFFICIENT_PERMISSIONS


class NotFoundError(APIError):
    default_code = ErrorCode.RESOURCE_NOT_FOUND


class UnexpectedError(APIError):
    """Server-side failure. The message is safe to show to clients."""
    default_code = ErrorCode.SERVER_INTERNAL_ERROR

    def __init__(self, message: str = GENERIC_SERVER_MESSAGE, **kwargs):
        super().__init__(message, **kwargs)


# =============================================================================
# HELPERS
# =============================================================================


def get_request_id(request: Request) -> str:
    """Get or generate request ID for tracking."""
    request_id = getattr(request.state, "request_id", None)
    if not request_id:
        request_id = request.headers.get("X-Request-ID")
    if not request_id:
        request_id = str(uuid.uuid4())
    return request_id


def _error_json(status_code: int, body: ErrorResponse, request_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(exclude_none=True),
        headers={"X-Request-ID": request_id},
    )


# =============================================================================
# GLOBAL EXCEPTION HANDLERS
# =============================================================================


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register all exception handlers with the FastAPI app.

    Call this in your app initialization:
        from security.api_errors import register_exception_handlers
        register_exception_handlers(app)
    """

    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
        """Handle APIError and its subclasses."""
        request_id = get_request_id(request)

        log_level = logging.WARNING if exc.status_code < 500 else logging.ERROR
        logger.log(
            log_level,
            f"[{request_id}] {type(exc).__name__}: {exc.code.value} - {exc.message}",
            extra={
                "request_id": request_id,
                "error_code": exc.code.value,
                "status_code": exc.status_code,
                "path": request.url.path,
                "method": request.method,
                "details": exc.details,
            },
        )

        return _error_json(exc.status_code, exc.to_response(request_id), request_id)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Handle Pydantic validation errors as 400s."""
        request_id = get_request_id(request)

        field_errors = []
        for error in exc.errors():
            field_path = ".".join(str(loc) for loc in error["loc"] if loc != "body")
            field_errors.append(FieldError(
                field=field_path or "body",
                message=error["msg"],
                code=error["type"],
            ))

        logger.warning(
            f"[{request_id}] Validation error: {len(field_errors)} field(s)",
            extra={
                "request_id": request_id,
                "path": request.url.path,
                "method": request.method,
            },
        )

        if field_errors:
            first = field_errors[0]
            message = f"Invalid request: {first.field}: {first.message}"
        else:
            message = "Invalid request"

        body = ErrorResponse(
            message=message,
            code=ErrorCode.VALIDATION_ERROR.value,
            request_id=request_id,
            field_errors=field_errors,
        )
        return _error_json(status.HTTP_400_BAD_REQUEST, body, request_id)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Handle standard HTTP exceptions (unknown routes, wrong methods)."""
        request_id = get_request_id(request)
        error_code = _STATUS_CODE_MAP.get(exc.status_code, ErrorCode.SERVER_INTERNAL_ERROR)

        logger.warning(
            f"[{request_id}] HTTP {exc.status_code}: {exc.detail}",
            extra={
                "request_id": request_id,
                "status_code": exc.status_code,
                "path": request.url.path,
                "method": request.method,
            },
        )

        body = ErrorResponse(
            message=str(exc.detail) if exc.detail else "An error occurred",
            code=error_code.value,
            request_id=request_id,
        )
        response = _error_json(exc.status_code, body, request_id)
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Global catch-all exception handler.

        SECURITY: Never expose internal error details to clients.
        """
        request_id = get_request_id(request)

        logger.error(
            f"[{request_id}] Unhandled exception: {type(exc).__name__}: {str(exc)}",
            extra={
                "request_id": request_id,
                "path": request.url.path,
                "method": request.method,
                "exception_type": type(exc).__name__,
                "traceback": traceback.format_exc(),
            },
            exc_info=True,
        )

        body = ErrorResponse(
            message=GENERIC_SERVER_MESSAGE,
            code=ErrorCode.SERVER_INTERNAL_ERROR.value,
            request_id=request_id,
        )
        return _error_json(status.HTTP_500_INTERNAL_SERVER_ERROR, body, request_id)
