"""
Health Check Endpoint

Provides:
1. /health - liveness plus a database round trip
"""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health(request: Request):
    """Report whether the service and its database are reachable."""
    database_up = await request.app.state.db.check_connection()
    if not database_up:
        logger.warning("Health check failed: database unreachable")
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "database": "down"},
        )
    return {"status": "healthy", "database": "up"}
