"""
Agent Routes - admin management of agents.

All routes require the admin role.
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

router = APIRouter(prefix="/agents", tags=["Agents"])

view_agents = require_permission(Permission.AGENT_VIEW)
manage_agents = require_permission(Permission.AGENT_MANAGE)


class AgentCreate(BaseModel):
    """Create agent request."""
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    mobile: str = Field(..., min_length=1, max_length=30)
    password: str = Field(..., min_length=1)


class AgentUpdate(BaseModel):
    """Update agent request. Omitted fields are left unchanged."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    email: Optional[EmailStr] = None
    mobile: Optional[str] = Field(None, min_length=1, max_length=30)
    password: Optional[str] = Field(None, min_length=1)


@router.get("")
async def list_agents(
    principal: CurrentPrincipal = Depends(view_agents),
    principals: PrincipalService = Depends(get_principal_service),
):
    """All agents, oldest first. This is the order uploads distribute in."""
    return [agent.to_dict() for agent in await principals.list(Role.AGENT)]


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_agent(
    body: AgentCreate,
    principal: CurrentPrincipal = Depends(manage_agents),
    principals: PrincipalService = Depends(get_principal_service),
):
    agent = await principals.create(
        Role.AGENT,
        name=body.name,
        email=body.email,
        password=body.password,
        mobile=body.mobile,
    )
    return agent.to_dict()


@router.get("/{agent_id}")
async def get_agent(
    agent_id: str,
    principal: CurrentPrincipal = Depends(view_agents),
    principals: PrincipalService = Depends(get_principal_service),
):
    return (await principals.get(Role.AGENT, agent_id)).to_dict()


@router.put("/{agent_id}")
async def update_agent(
    agent_id: str,
    body: AgentUpdate,
    principal: CurrentPrincipal = Depends(manage_agents),
    principals: PrincipalService = Depends(get_principal_service),
):
    agent = await principals.update(Role.AGENT, agent_id, **body.model_dump(exclude_unset=True))
    return agent.to_dict()


@router.delete("/{agent_id}")
async def delete_agent(
    agent_id: str,
    principal: CurrentPrincipal = Depends(manage_agents),
    principals: PrincipalService = Depends(get_principal_service),
):
    """
    Delete an agent.

    Its tasks stay with the assignee cleared. Its sub-agents are kept.
    """
    await principals.delete(Role.AGENT, agent_id)
    return {"message": "Agent deleted successfully"}
