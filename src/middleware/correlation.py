"""Request Correlation ID Middleware.

Provides request tracing with unique request IDs. The ID is:
- Taken from the X-Request-ID header if the caller sent one
- Generated for each request otherwise
- Included in all log messages (via services.logging_config.request_id_var)
- Returned in response headers

Usage:
    from fastapi import FastAPI
    from middleware.correlation import CorrelationIdMiddleware

    app = FastAPI()
    app.add_middleware(CorrelationIdMiddleware)
"""

from __future__ import annotations

import logging
import re
import uuid
from contextvars import Token
from typing import Any, Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from services.logging_config import request_id_var

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Caller-supplied IDs are echoed into logs and headers; keep them tame
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._\-]{1,128}$")


def get_correlation_id() -> Optional[str]:
    """Get the request ID bound to the current context, or None."""
    return request_id_var.get()


def set_correlation_id(correlation_id: str) -> Token[Optional[str]]:
    """Bind a request ID to the current context."""
    return request_id_var.set(correlation_id)


def reset_correlation_id(token: Token[Optional[str]]) -> None:
    """Reset the request ID to its previous value."""
    request_id_var.reset(token)


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Middleware to handle request IDs for tracing."""

    def __init__(
        self,
        app,
        header_name: str = REQUEST_ID_HEADER,
        generator: Optional[Callable[[], str]] = None,
    ):
        super().__init__(app)
        self.header_name = header_name
        self.generator = generator or (lambda: str(uuid.uuid4()))

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Any],
    ) -> Response:
        correlation_id = request.headers.get(self.header_name)
        if not correlation_id or not _VALID_REQUEST_ID.match(correlation_id):
            correlation_id = self.generator()

        token = set_correlation_id(correlation_id)
        try:
            request.state.request_id = correlation_id
            response = await call_next(request)
            response.headers[self.header_name] = correlation_id
            return response
        finally:
            reset_correlation_id(token)
