"""
Task Service - upload orchestration, listings and task mutations.

Handles:
- Upload-and-distribute: stage, parse, pick assignees, distribute
- Role-scoped listings with assignee and creator details resolved
- Status updates and deletes, checked against the task access policy
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement
from starlette.concurrency import run_in_threadpool

from database.models import (
    AssignmentTarget,
    CreatorKind,
    CreatorRef,
    Principal,
    Task,
    TaskStatus,
)
from rbac.dependencies import CurrentPrincipal
from rbac.roles import Role, get_role_info
from rbac.task_policy import TaskOperation, can_mutate, visible_tasks_filter
from security.api_errors import (
    AuthorizationError,
    NotFoundError,
    UnexpectedError,
    ValidationError,
)
from security.file_upload_security import SecureUpload
from .principal_service import PrincipalService
from .task_distributor import Assignee, DistributionSummary, TaskDistributor
from .task_import import UPLOAD_FAILED_MESSAGE, load_task_records, stage_upload

logger = logging.getLogger(__name__)

TASK_NOT_FOUND_MESSAGE = "Task not found"

_TARGETS = {
    Role.ADMIN: AssignmentTarget.AGENT,
    Role.AGENT: AssignmentTarget.SUB_AGENT,
}


class TaskService:
    """Service for task operations on behalf of an authenticated principal."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # =========================================================================
    # UPLOAD AND DISTRIBUTE
    # =========================================================================

    async def _assignees_for(self, principal: CurrentPrincipal) -> List[Assignee]:
        principals = PrincipalService(self.db)
        if principal.is_admin:
            found = await principals.list(Role.AGENT)
        else:
            found = await principals.list(Role.SUB_AGENT, parent_agent_id=principal.id)
        return [Assignee.from_principal(p) for p in found]

    async def import_and_distribute(
        self,
        principal: CurrentPrincipal,
        upload: SecureUpload,
        upload_dir: Path,
    ) -> DistributionSummary:
        """
        Turn an uploaded contact list into tasks for the caller's assignees.

        Admins distribute to every agent; agents distribute to their own
        sub-agents. The staged file is gone by the time this returns or
        raises.

        Raises:
            ValidationError: no valid rows, or no assignees
            UnexpectedError: staging, parsing or persistence failed
        """
        if not get_role_info(principal.role).can_create_tasks:
            raise AuthorizationError(f"Role {principal.role.value} cannot distribute tasks")
        target = _TARGETS[principal.role]

        try:
            with stage_upload(upload_dir, upload) as path:
                records = await run_in_threadpool(load_task_records, path, upload.extension)

            assignees = await self._assignees_for(principal)
            creator = CreatorRef(kind=CreatorKind.for_role(principal.role), id=principal.id)
            summary = await TaskDistributor(self.db).distribute(records, assignees, creator, target)
            await self.db.commit()
            return summary
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Upload by {principal.id} failed: {e}", exc_info=True)
            raise UnexpectedError(UPLOAD_FAILED_MESSAGE)

    # =========================================================================
    # LISTINGS
    # =========================================================================

    async def _list(self, criteria: ColumnElement) -> List[Dict[str, Any]]:
        query = (
            select(Task)
            .where(criteria)
            .order_by(Task.created_at.desc(), Task.id.desc())
        )
        result = await self.db.execute(query)
        return await self.serialize(result.scalars().all())

    async def list_visible(self, principal: CurrentPrincipal) -> List[Dict[str, Any]]:
        """Every task the caller may see, scoped by role."""
        return await self._list(visible_tasks_filter(principal))

    async def list_created(self, principal: CurrentPrincipal) -> List[Dict[str, Any]]:
        """Tasks the caller distributed."""
        return await self._list(
            (Task.created_by_id == principal.id)
            & (Task.created_by_kind == CreatorKind.for_role(principal.role).value)
        )

    async def list_assigned(self, principal: CurrentPrincipal) -> List[Dict[str, Any]]:
        """The caller's inbox."""
        if principal.role == Role.AGENT:
            return await self._list(Task.assigned_agent_id == principal.id)
        return await self._list(Task.assigned_sub_agent_id == principal.id)

    async def serialize(self, tasks: Iterable[Task]) -> List[Dict[str, Any]]:
        """Task dicts with assignee and creator summaries attached."""
        tasks = list(tasks)
        ids = set()
        for task in tasks:
            ids.update(
                i for i in (task.assigned_agent_id, task.assigned_sub_agent_id, task.created_by_id) if i
            )

        lookup: Dict[str, Principal] = {}
        if ids:
            result = await self.db.execute(select(Principal).where(Principal.id.in_(ids)))
            lookup = {p.id: p for p in result.scalars().all()}

        return [self._task_to_dict(task, lookup) for task in tasks]

    @staticmethod
    def _task_to_dict(task: Task, lookup: Dict[str, Principal]) -> Dict[str, Any]:
        data = task.to_dict()

        def summary(principal_id: Optional[str]) -> Optional[dict]:
            principal = lookup.get(principal_id) if principal_id else None
            return principal.to_summary() if principal else None

        data["assigned_agent"] = summary(task.assigned_agent_id)
        data["assigned_sub_agent"] = summary(task.assigned_sub_agent_id)

        creator = task.creator
        created_by = {"kind": creator.kind.value, "id": creator.id, "name": None, "email": None}
        principal = lookup.get(creator.id)
        # The id alone is ambiguous across kinds; only accept a matching role
        if principal is not None and principal.role == creator.kind.value:
            created_by.update(name=principal.name, email=principal.email)
        data["created_by"] = created_by
        return data

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    async def _get(self, task_id: str) -> Task:
        task = await self.db.get(Task, task_id)
        if task is None:
            raise NotFoundError(TASK_NOT_FOUND_MESSAGE)
        return task

    async def update_status(
        self,
        principal: CurrentPrincipal,
        task_id: str,
        status: Optional[str],
    ) -> Dict[str, Any]:
        """
        Change a task's status.

        Raises:
            NotFoundError: no such task
            AuthorizationError: caller is neither creator nor assignee
            ValidationError: unknown status value
        """
        task = await self._get(task_id)

        if not can_mutate(principal, task, TaskOperation.UPDATE_STATUS):
            logger.warning(f"Principal {principal.id} denied status update on task {task_id}")
            raise AuthorizationError("Not authorized to update this task")

        try:
            new_status = TaskStatus(status)
        except ValueError:
            allowed = ", ".join(s.value for s in TaskStatus)
            raise ValidationError(f"Invalid status. Must be one of: {allowed}")

        task.status = new_status.value
        await self.db.commit()
        await self.db.refresh(task)

        logger.info(f"Task {task_id} set to {new_status.value} by {principal.id}")
        return (await self.serialize([task]))[0]

    async def delete(self, principal: CurrentPrincipal, task_id: str) -> None:
        """
        Remove a task.

        Raises:
            NotFoundError: no such task
            AuthorizationError: caller is neither an admin nor the creator
        """
        task = await self._get(task_id)

        if not can_mutate(principal, task, TaskOperation.DELETE):
            logger.warning(f"Principal {principal.id} denied delete on task {task_id}")
            raise AuthorizationError("Not authorized to delete this task")

        await self.db.delete(task)
        await self.db.commit()
        logger.info(f"Task {task_id} deleted by {principal.id}")
