"""
FastAPI application factory for the task distribution service.

Routes (each also mounted under /api):
- GET    /health                  : liveness and database check
- POST   /auth/register           : create an admin
- POST   /auth/login              : issue a session token
- GET    /auth/me                 : current principal
- *      /agents[/{id}]           : admin management of agents
- *      /subagents[/{id}]        : agent management of own sub-agents
- POST   /tasks/upload            : admin distributes a list to agents
- POST   /tasks/upload-subagent   : agent distributes a list to sub-agents
- GET    /tasks[/admin|/agent|/agent-created|/subagent] : listings
- PATCH  /tasks/{id}/status       : status update
- DELETE /tasks/{id}              : delete

Usage:
    uvicorn web.app:create_app --factory
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.settings import Settings, get_settings
from database.async_engine import Database
from middleware.correlation import CorrelationIdMiddleware
from rbac.jwt import SessionIssuer
from security.api_errors import register_exception_handlers
from services.logging_config import configure_logging
from web.routers import (
    agents_router,
    auth_router,
    health_router,
    subagents_router,
    tasks_router,
)

logger = logging.getLogger(__name__)

_ROUTERS = (health_router, auth_router, agents_router, subagents_router, tasks_router)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the application from an explicit settings struct.

    The database and the session issuer are created here and live on
    app.state; nothing reads the environment after this returns.
    """
    settings = settings or get_settings()

    configure_logging(
        level=settings.log_level,
        json_output=settings.log_json or settings.is_production,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await app.state.db.init_schema()
        logger.info(f"{settings.name} started ({settings.environment})")
        yield
        await app.state.db.dispose()

    app = FastAPI(
        title=settings.name,
        version=settings.version,
        debug=settings.debug,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.db = Database(settings.database)
    app.state.session_issuer = SessionIssuer.from_settings(settings)

    # Last added = first executed
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(CorrelationIdMiddleware)

    register_exception_handlers(app)

    for router in _ROUTERS:
        app.include_router(router)
        app.include_router(router, prefix="/api")

    return app
