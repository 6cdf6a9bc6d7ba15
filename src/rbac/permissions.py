"""
Permission Definitions

Permissions are the capability table behind every route. Routes declare the
roles they accept (see dependencies.py); this table is the single source for
which role may do what, and the route role sets are derived from it.

Categories:
    - AGENT: agent management (admin)
    - SUB_AGENT: sub-agent management (agent, scoped to own sub-agents)
    - TASK: task distribution, listing and mutation
"""

from enum import Enum
from typing import FrozenSet

from .roles import Role


class Permission(str, Enum):
    """
    All permissions in the system.

    Naming: category_action (e.g., agent_manage, task_upload)
    """

    # Agent management
    AGENT_VIEW = "agent_view"
    AGENT_MANAGE = "agent_manage"

    # Sub-agent management (own sub-agents only)
    SUB_AGENT_VIEW = "sub_agent_view"
    SUB_AGENT_MANAGE = "sub_agent_manage"

    # Task distribution
    TASK_UPLOAD_TO_AGENTS = "task_upload_to_agents"
    TASK_UPLOAD_TO_SUB_AGENTS = "task_upload_to_sub_agents"

    # Task mutation (ownership checked separately by task_policy)
    TASK_UPDATE_STATUS = "task_update_status"
    TASK_DELETE = "task_delete"


ROLE_PERMISSIONS: dict[Role, FrozenSet[Permission]] = {
    # -------------------------------------------------------------------------
    # ADMIN: agents, distribution to agents
    # -------------------------------------------------------------------------
    Role.ADMIN: frozenset({
        Permission.AGENT_VIEW,
        Permission.AGENT_MANAGE,
        Permission.TASK_UPLOAD_TO_AGENTS,
        Permission.TASK_UPDATE_STATUS,
        Permission.TASK_DELETE,
    }),

    # -------------------------------------------------------------------------
    # AGENT: own sub-agents, distribution to own sub-agents
    # -------------------------------------------------------------------------
    Role.AGENT: frozenset({
        Permission.SUB_AGENT_VIEW,
        Permission.SUB_AGENT_MANAGE,
        Permission.TASK_UPLOAD_TO_SUB_AGENTS,
        Permission.TASK_UPDATE_STATUS,
        Permission.TASK_DELETE,
    }),

    # -------------------------------------------------------------------------
    # SUB_AGENT: status updates on own tasks only
    # -------------------------------------------------------------------------
    Role.SUB_AGENT: frozenset({
        Permission.TASK_UPDATE_STATUS,
    }),
}


def get_permissions(role: Role) -> FrozenSet[Permission]:
    """Get all permissions for a role."""
    return ROLE_PERMISSIONS.get(role, frozenset())


def has_permission(role: Role, permission: Permission) -> bool:
    """Check if a role has a specific permission."""
    return permission in ROLE_PERMISSIONS.get(role, frozenset())


def roles_with(permission: Permission) -> FrozenSet[Role]:
    """All roles granted a permission, in declaration order of Role."""
    return frozenset(role for role in Role if has_permission(role, permission))
