"""
FastAPI Dependency Injection for request-scoped services.

Provides dependency injection for:
- AsyncSession (one per request, from the app's Database)
- Settings (the frozen struct the app was built with)
- PrincipalService / TaskService

Usage in endpoints:
    @router.get("/tasks")
    async def list_tasks(service: TaskService = Depends(get_task_service)):
        ...
"""

from typing import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import Settings
from services.principal_service import PrincipalService
from services.task_service import TaskService


def get_settings(request: Request) -> Settings:
    """Settings the application factory was given."""
    return request.app.state.settings


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    Get a database session for the request.

    Commits on success and rolls back if the endpoint raises.
    """
    async with request.app.state.db.session() as session:
        yield session


def get_principal_service(
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> PrincipalService:
    return PrincipalService(session, bcrypt_rounds=settings.bcrypt_rounds)


def get_task_service(session: AsyncSession = Depends(get_session)) -> TaskService:
    return TaskService(session)
