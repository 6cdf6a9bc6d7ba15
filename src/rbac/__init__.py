"""
Role-Based Access Control (RBAC)

Three-role access model for the task distribution service.

Hierarchy:
    Level 0 - admin: uploads contact lists, manages agents
    Level 1 - agent: works own inbox, re-distributes to own sub-agents
    Level 2 - sub-agent: works tasks handed down by the parent agent

Modules:
    roles        - Role enum and role registry
    permissions  - capability table (role -> permissions)
    password     - bcrypt credential hashing
    jwt          - session token issue/validate
    dependencies - FastAPI access guard
    task_policy  - per-task ownership checks and listing scopes

Usage:
    from rbac import Role
    from rbac.dependencies import require_roles

    @router.get("/agents")
    async def list_agents(principal = Depends(require_roles(Role.ADMIN))):
        ...
"""

from .roles import Role, RoleInfo, ROLES, get_role_info
from .permissions import Permission, ROLE_PERMISSIONS, get_permissions, has_permission, roles_with

__all__ = [
    # Roles
    "Role",
    "RoleInfo",
    "ROLES",
    "get_role_info",

    # Permissions
    "Permission",
    "ROLE_PERMISSIONS",
    "get_permissions",
    "has_permission",
    "roles_with",
]
