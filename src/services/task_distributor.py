"""
Task Distributor - even, contiguous-block partition of uploaded rows.

Given n valid records and k assignees (in a fixed order):

    base      = n // k
    remainder = n %  k

assignee i receives ``base + 1`` records if ``i < remainder``, else ``base``.
Records are consumed in their original order, one contiguous block per
assignee: nothing is shuffled or interleaved. When k > n the trailing
assignees receive nothing.

Every task in one call shares a batch id. All rows are added to the session
and flushed together; the caller commits them as one unit, so a failure
never leaves a partial batch behind.

The partition is computed against the assignee list read at upload time.
Concurrent uploads against the same pool are not serialized, so per-assignee
load is only balanced within a single batch.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Sequence, Tuple, TypeVar
from uuid import uuid4

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import (
    AssignmentTarget,
    CreatorRef,
    Principal,
    Task,
    TaskStatus,
)
from security.api_errors import ValidationError
from services.logging_config import log_performance
from services.task_import import TaskRecord

logger = logging.getLogger(__name__)

NO_VALID_TASKS_MESSAGE = (
    "No valid tasks found. Please ensure your file has FirstName, Phone, and Notes columns."
)
NO_ASSIGNEES_MESSAGES = {
    AssignmentTarget.AGENT: "No agents available for task assignment",
    AssignmentTarget.SUB_AGENT: "No sub-agents available for task assignment",
}

R = TypeVar("R")
A = TypeVar("A")


@dataclass(frozen=True)
class Assignee:
    """Reference to a principal that can receive tasks."""
    id: str
    name: str

    @classmethod
    def from_principal(cls, principal: Principal) -> "Assignee":
        return cls(id=principal.id, name=principal.name)


@dataclass(frozen=True)
class AssigneeCount:
    """Number of tasks one assignee received in a batch."""
    assignee_id: str
    assignee_name: str
    task_count: int

    def to_dict(self) -> dict:
        return {
            "assignee_id": self.assignee_id,
            "assignee_name": self.assignee_name,
            "task_count": self.task_count,
        }


@dataclass(frozen=True)
class DistributionSummary:
    """Outcome of one upload-and-distribute call."""
    total_tasks: int
    batch_id: str
    per_assignee: List[AssigneeCount] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total_tasks": self.total_tasks,
            "batch_id": self.batch_id,
            "distribution": [entry.to_dict() for entry in self.per_assignee],
        }


# =============================================================================
# PURE ALLOCATION
# =============================================================================

def allocation_counts(n: int, k: int) -> List[int]:
    """
    Task count per assignee index for n tasks over k assignees.

    The first ``n % k`` assignees get one more than the rest.
    """
    if n < 0:
        raise ValueError("n must be non-negative")
    if k < 1:
        raise ValueError("k must be at least 1")

    base, remainder = divmod(n, k)
    return [base + 1 if i < remainder else base for i in range(k)]


def plan_distribution(
    records: Sequence[R],
    assignees: Sequence[A],
) -> List[Tuple[A, List[R]]]:
    """
    Split records into contiguous blocks, one per assignee, in order.

    Assignees that receive nothing (k > n) are still listed, with an empty
    block.
    """
    plan = []
    start = 0
    for assignee, count in zip(assignees, allocation_counts(len(records), len(assignees))):
        plan.append((assignee, list(records[start:start + count])))
        start += count
    return plan


# =============================================================================
# PERSISTENCE
# =============================================================================

class TaskDistributor:
    """Persists a distribution plan and reports what each assignee received."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @log_performance("task_distribution")
    async def distribute(
        self,
        records: Sequence[TaskRecord],
        assignees: Sequence[Assignee],
        creator: CreatorRef,
        target: AssignmentTarget,
    ) -> DistributionSummary:
        """
        Partition records across assignees and persist them as one batch.

        Args:
            records: Valid task records, in file order
            assignees: Receiving principals, in distribution order
            creator: Principal that uploaded the list
            target: Task column that receives the assignee id

        Returns:
            DistributionSummary for the new batch

        Raises:
            ValidationError: no records, or no assignees
        """
        if not records:
            raise ValidationError(NO_VALID_TASKS_MESSAGE)
        if not assignees:
            raise ValidationError(NO_ASSIGNEES_MESSAGES[target])

        batch_id = str(uuid4())
        tasks = []
        for assignee, block in plan_distribution(records, assignees):
            for record in block:
                tasks.append(Task(
                    first_name=record.first_name,
                    phone=record.phone,
                    notes=record.notes,
                    created_by_id=creator.id,
                    created_by_kind=creator.kind.value,
                    status=TaskStatus.PENDING.value,
                    batch_id=batch_id,
                    **{target.value: assignee.id},
                ))

        self.db.add_all(tasks)
        await self.db.flush()

        logger.info(
            f"Distributed {len(tasks)} task(s) across {len(assignees)} "
            f"{target.assignee_role.value}(s) in batch {batch_id}",
            extra={"batch_id": batch_id, "creator_id": creator.id},
        )

        return await self.summarize(batch_id, target, assignees)

    async def summarize(
        self,
        batch_id: str,
        target: AssignmentTarget,
        assignees: Iterable[Assignee] = (),
    ) -> DistributionSummary:
        """
        Re-aggregate a persisted batch by assignee.

        Only assignees holding at least one task appear. Entries follow the
        order of `assignees` when given, then assignee name.
        """
        column = getattr(Task, target.value)
        stmt = (
            select(column, Principal.name, func.count(Task.id))
            .join(Principal, Principal.id == column)
            .where(Task.batch_id == batch_id)
            .group_by(column, Principal.name)
        )
        rows = (await self.db.execute(stmt)).all()

        position = {assignee.id: index for index, assignee in enumerate(assignees)}
        rows.sort(key=lambda row: (position.get(row[0], len(position)), row[1]))

        per_assignee = [
            AssigneeCount(assignee_id=row[0], assignee_name=row[1], task_count=row[2])
            for row in rows
        ]
        return DistributionSummary(
            total_tasks=sum(entry.task_count for entry in per_assignee),
            batch_id=batch_id,
            per_assignee=per_assignee,
        )
