"""
Sub-Agent Routes - an agent's management of its own sub-agents.

All routes require the agent role and are scoped to sub-agents whose parent
is the caller. Another agent's sub-agent answers 404, not 403.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, EmailStr, Field

from rbac.dependencies import CurrentPrincipal, require_permission
from rbac.permissions import Permission
from rbac.roles import Role
from services.principal_service import PrincipalService
from web.dependencies import get_principal_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/subagents", tags=["Sub-Agents"])

view_sub_agents = require_permission(Permission.SUB_AGENT_VIEW)
manage_sub_agents = require_permission(Permission.SUB_AGENT_MANAGE)


class SubAgentCreate(BaseModel):
    """Create sub-agent request."""
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    mobile: str = Field(..., min_length=1, max_length=30)
    password: str = Field(..., min_length=1)


class SubAgentUpdate(BaseModel):
    """Update sub-agent request. Omitted fields are left unchanged."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    email: Optional[EmailStr] = None
    mobile: Optional[str] = Field(None, min_length=1, max_length=30)
    password: Optional[str] = Field(None, min_length=1)


@router.get("")
async def list_sub_agents(
    principal: CurrentPrincipal = Depends(view_sub_agents),
    principals: PrincipalService = Depends(get_principal_service),
):
    """The caller's sub-agents, oldest first."""
    found = await principals.list(Role.SUB_AGENT, parent_agent_id=principal.id)
    return [sub_agent.to_dict() for sub_agent in found]


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_sub_agent(
    body: SubAgentCreate,
    principal: CurrentPrincipal = Depends(manage_sub_agents),
    principals: PrincipalService = Depends(get_principal_service),
):
    sub_agent = await principals.create(
        Role.SUB_AGENT,
        name=body.name,
        email=body.email,
        password=body.password,
        mobile=body.mobile,
        parent_agent_id=principal.id,
    )
    return sub_agent.to_dict()


@router.get("/{sub_agent_id}")
async def get_sub_agent(
    sub_agent_id: str,
    principal: CurrentPrincipal = Depends(view_sub_agents),
    principals: PrincipalService = Depends(get_principal_service),
):
    sub_agent = await principals.get(Role.SUB_AGENT, sub_agent_id, parent_agent_id=principal.id)
    return sub_agent.to_dict()


@router.put("/{sub_agent_id}")
async def update_sub_agent(
    sub_agent_id: str,
    body: SubAgentUpdate,
    principal: CurrentPrincipal = Depends(manage_sub_agents),
    principals: PrincipalService = Depends(get_principal_service),
):
    sub_agent = await principals.update(
        Role.SUB_AGENT,
        sub_agent_id,
        parent_agent_id=principal.id,
        **body.model_dump(exclude_unset=True),
    )
    return sub_agent.to_dict()


@router.delete("/{sub_agent_id}")
async def delete_sub_agent(
    sub_agent_id: str,
    principal: CurrentPrincipal = Depends(manage_sub_agents),
    principals: PrincipalService = Depends(get_principal_service),
):
    await principals.delete(Role.SUB_AGENT, sub_agent_id, parent_agent_id=principal.id)
    return {"message": "Sub-agent deleted successfully"}
