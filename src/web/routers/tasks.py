"""
Task Routes

Provides:
- Upload-and-distribute (admin to agents, agent to sub-agents)
- Listing variants, scoped by role
- Status updates and deletes, checked per task
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile
from pydantic import BaseModel

from config.settings import Settings
from rbac.dependencies import (
    CurrentPrincipal,
    get_current_principal,
    require_permission,
    require_roles,
)
from rbac.permissions import Permission
from rbac.roles import Role
from security.file_upload_security import validate_upload
from services.task_import import ALLOWED_EXTENSIONS, UNSUPPORTED_TYPE_MESSAGE
from services.task_service import TaskService
from web.dependencies import get_settings, get_task_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tasks", tags=["Tasks"])

UPLOAD_SUCCESS_MESSAGE = "Tasks uploaded and distributed successfully"


class StatusUpdate(BaseModel):
    """Status update request."""
    status: Optional[str] = None


async def _upload(
    principal: CurrentPrincipal,
    file: Optional[UploadFile],
    settings: Settings,
    tasks: TaskService,
) -> dict:
    upload = await validate_upload(
        file,
        allowed_types=ALLOWED_EXTENSIONS,
        max_size_bytes=settings.max_upload_bytes,
        type_error_message=UNSUPPORTED_TYPE_MESSAGE,
    )
    summary = await tasks.import_and_distribute(principal, upload, settings.upload_dir)
    return {"message": UPLOAD_SUCCESS_MESSAGE, **summary.to_dict()}


# =============================================================================
# UPLOAD
# =============================================================================

@router.post("/upload")
async def upload_to_agents(
    file: Optional[UploadFile] = File(None),
    principal: CurrentPrincipal = Depends(require_permission(Permission.TASK_UPLOAD_TO_AGENTS)),
    settings: Settings = Depends(get_settings),
    tasks: TaskService = Depends(get_task_service),
):
    """Split a CSV/XLSX/XLS contact list evenly across all agents."""
    return await _upload(principal, file, settings, tasks)


@router.post("/upload-subagent")
async def upload_to_sub_agents(
    file: Optional[UploadFile] = File(None),
    principal: CurrentPrincipal = Depends(require_permission(Permission.TASK_UPLOAD_TO_SUB_AGENTS)),
    settings: Settings = Depends(get_settings),
    tasks: TaskService = Depends(get_task_service),
):
    """Split a CSV/XLSX/XLS contact list evenly across the caller's sub-agents."""
    return await _upload(principal, file, settings, tasks)


# =============================================================================
# LISTINGS
# =============================================================================

@router.get("")
async def list_tasks(
    principal: CurrentPrincipal = Depends(get_current_principal),
    tasks: TaskService = Depends(get_task_service),
):
    """Every task visible to the caller, newest first."""
    return await tasks.list_visible(principal)


@router.get("/admin")
async def list_admin_tasks(
    principal: CurrentPrincipal = Depends(require_roles(Role.ADMIN)),
    tasks: TaskService = Depends(get_task_service),
):
    """Tasks this admin distributed."""
    return await tasks.list_created(principal)


@router.get("/agent")
async def list_agent_tasks(
    principal: CurrentPrincipal = Depends(require_roles(Role.AGENT)),
    tasks: TaskService = Depends(get_task_service),
):
    """The agent's inbox."""
    return await tasks.list_assigned(principal)


@router.get("/agent-created")
async def list_agent_created_tasks(
    principal: CurrentPrincipal = Depends(require_roles(Role.AGENT)),
    tasks: TaskService = Depends(get_task_service),
):
    """Tasks the agent handed to its sub-agents."""
    return await tasks.list_created(principal)


@router.get("/subagent")
async def list_sub_agent_tasks(
    principal: CurrentPrincipal = Depends(require_roles(Role.SUB_AGENT)),
    tasks: TaskService = Depends(get_task_service),
):
    """The sub-agent's inbox."""
    return await tasks.list_assigned(principal)


# =============================================================================
# MUTATIONS
# =============================================================================

@router.patch("/{task_id}/status")
async def update_task_status(
    task_id: str,
    body: StatusUpdate,
    principal: CurrentPrincipal = Depends(require_permission(Permission.TASK_UPDATE_STATUS)),
    tasks: TaskService = Depends(get_task_service),
):
    return await tasks.update_status(principal, task_id, body.status)


@router.delete("/{task_id}")
async def delete_task(
    task_id: str,
    principal: CurrentPrincipal = Depends(require_permission(Permission.TASK_DELETE)),
    tasks: TaskService = Depends(get_task_service),
):
    await tasks.delete(principal, task_id)
    return {"message": "Task deleted successfully"}
