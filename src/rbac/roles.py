"""
Role Definitions

3 roles organized in a strict hierarchy:

    ADMIN (Level 0)
    └── uploads contact lists, distributes them across agents,
        manages agents

    AGENT (Level 1)
    └── works their own inbox, re-distributes lists to sub-agents,
        manages their own sub-agents

    SUB-AGENT (Level 2)
    └── works tasks handed down by their parent agent

Every principal kind shares one storage table; the role tag selects the
email namespace and the capabilities (see permissions.py).
"""

from enum import Enum
from dataclasses import dataclass
from typing import Iterable, Optional


class Role(str, Enum):
    """
    All roles in the system.

    Values are the wire representation used in session tokens and login
    requests.
    """

    ADMIN = "admin"
    AGENT = "agent"
    SUB_AGENT = "sub-agent"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["Role"]:
        """Return the Role for a wire value, or None if unknown."""
        if value is None:
            return None
        try:
            return cls(value)
        except ValueError:
            return None


class Level(int, Enum):
    """
    Hierarchy levels.

    Lower number = higher privilege.
    """
    ADMIN = 0
    AGENT = 1
    SUB_AGENT = 2


@dataclass(frozen=True)
class RoleInfo:
    """Complete information about a role."""
    role: Role
    name: str
    description: str
    level: Level
    requires_mobile: bool       # Must the principal record carry a mobile number?
    has_parent: bool            # Is the principal owned by an agent?
    can_create_tasks: bool      # May this role upload and distribute lists?


# =============================================================================
# ROLE REGISTRY
# =============================================================================

ROLES: dict[Role, RoleInfo] = {
    Role.ADMIN: RoleInfo(
        role=Role.ADMIN,
        name="Admin",
        description="Uploads contact lists and manages agents",
        level=Level.ADMIN,
        requires_mobile=False,
        has_parent=False,
        can_create_tasks=True,
    ),
    Role.AGENT: RoleInfo(
        role=Role.AGENT,
        name="Agent",
        description="Works assigned tasks and manages sub-agents",
        level=Level.AGENT,
        requires_mobile=True,
        has_parent=False,
        can_create_tasks=True,
    ),
    Role.SUB_AGENT: RoleInfo(
        role=Role.SUB_AGENT,
        name="Sub-agent",
        description="Works tasks handed down by a parent agent",
        level=Level.SUB_AGENT,
        requires_mobile=True,
        has_parent=True,
        can_create_tasks=False,
    ),
}


def get_role_info(role: Role) -> RoleInfo:
    """Get information about a role."""
    return ROLES[role]


def format_roles(roles: Iterable[Role]) -> str:
    """Render a role set for error messages: 'admin or agent'."""
    return " or ".join(r.value for r in roles)

