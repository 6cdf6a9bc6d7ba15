"""
Task Access Policy

While rbac/permissions.py defines which roles may reach a task operation,
this module decides whether a given principal may act on a given task.

- Status update: identity only. The caller must be the creator or one of the
  two assignees; role is not consulted.
- Delete: any admin, or the creator.
- Listing: admins see everything; agents see their inbox plus what they
  distributed; sub-agents see their inbox.
"""

from enum import Enum

from sqlalchemy import and_, or_, true
from sqlalchemy.sql.elements import ColumnElement

from database.models import CreatorKind, Task
from .dependencies import CurrentPrincipal
from .roles import Role


class TaskOperation(str, Enum):
    """Mutations governed by the task policy."""
    UPDATE_STATUS = "update_status"
    DELETE = "delete"


def can_update_status(principal: CurrentPrincipal, task: Task) -> bool:
    """
    Check if a principal may change a task's status.

    Examples:
        creator            -> True
        assigned agent     -> True
        assigned sub-agent -> True
        anyone else        -> False, whatever their role
    """
    return principal.id in (
        task.created_by_id,
        task.assigned_agent_id,
        task.assigned_sub_agent_id,
    )


def can_delete(principal: CurrentPrincipal, task: Task) -> bool:
    """Admins may delete any task; others only tasks they created."""
    if principal.is_admin:
        return True
    return principal.id == task.created_by_id


_CHECKS = {
    TaskOperation.UPDATE_STATUS: can_update_status,
    TaskOperation.DELETE: can_delete,
}


def can_mutate(principal: CurrentPrincipal, task: Task, operation: TaskOperation) -> bool:
    return _CHECKS[TaskOperation(operation)](principal, task)


def visible_tasks_filter(principal: CurrentPrincipal) -> ColumnElement:
    """
    WHERE clause selecting the tasks a principal may list.

    Usage:
        stmt = select(Task).where(visible_tasks_filter(principal))
    """
    if principal.is_admin:
        return true()

    if principal.role == Role.AGENT:
        return or_(
            Task.assigned_agent_id == principal.id,
            and_(
                Task.created_by_id == principal.id,
                Task.created_by_kind == CreatorKind.AGENT.value,
            ),
        )

    return Task.assigned_sub_agent_id == principal.id
