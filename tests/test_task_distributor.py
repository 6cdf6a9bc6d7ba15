"""Tests for the even, contiguous-block task distributor."""

import pytest
from sqlalchemy import func, select

from database.models import (
    AssignmentTarget,
    CreatorKind,
    CreatorRef,
    Principal,
    Task,
    TaskStatus,
)
from security.api_errors import ValidationError
from services.task_distributor import (
    NO_VALID_TASKS_MESSAGE,
    Assignee,
    TaskDistributor,
    allocation_counts,
    plan_distribution,
)
from services.task_import import TaskRecord


def _records(count):
    return [TaskRecord(first_name=f"F{i}", phone=f"{i}", notes=f"n{i}") for i in range(count)]


class TestAllocationCounts:
    """Tests for the per-assignee task counts."""

    def test_ten_over_three(self):
        assert allocation_counts(10, 3) == [4, 3, 3]

    def test_exact_division(self):
        assert allocation_counts(9, 3) == [3, 3, 3]

    def test_more_assignees_than_tasks(self):
        assert allocation_counts(2, 5) == [1, 1, 0, 0, 0]

    def test_zero_tasks(self):
        assert allocation_counts(0, 4) == [0, 0, 0, 0]

    @pytest.mark.parametrize("n", range(0, 30))
    @pytest.mark.parametrize("k", range(1, 8))
    def test_balanced_and_complete(self, n, k):
        """Counts sum to n, differ by at most one, larger ones come first."""
        counts = allocation_counts(n, k)
        assert sum(counts) == n
        assert max(counts) - min(counts) <= 1
        assert counts == sorted(counts, reverse=True)
        assert sum(1 for c in counts if c == n // k + 1) == n % k

    def test_rejects_no_assignees(self):
        with pytest.raises(ValueError):
            allocation_counts(3, 0)


class TestPlanDistribution:
    """Tests for the contiguous slicing of records."""

    def test_blocks_are_contiguous_and_ordered(self):
        plan = plan_distribution(list(range(10)), ["a", "b", "c"])
        assert plan == [
            ("a", [0, 1, 2, 3]),
            ("b", [4, 5, 6]),
            ("c", [7, 8, 9]),
        ]

    def test_concatenation_preserves_input_order(self):
        records = list(range(17))
        plan = plan_distribution(records, ["a", "b", "c", "d"])
        flattened = [r for _, block in plan for r in block]
        assert flattened == records

    def test_trailing_assignees_get_empty_blocks(self):
        plan = plan_distribution(["x"], ["a", "b"])
        assert plan == [("a", ["x"]), ("b", [])]


async def _add_principal(session, role, name):
    principal = Principal(
        role=role,
        name=name,
        email=f"{name.lower()}@example.com",
        mobile="555" if role != "admin" else None,
        password_hash="x",
    )
    session.add(principal)
    await session.flush()
    return principal


class TestTaskDistributor:
    """Tests for persisting a distribution."""

    @pytest.mark.asyncio
    async def test_distribute_persists_batch(self, session):
        admin = await _add_principal(session, "admin", "Boss")
        agents = [await _add_principal(session, "agent", name) for name in ("A", "B", "C")]
        creator = CreatorRef(kind=CreatorKind.ADMIN, id=admin.id)

        summary = await TaskDistributor(session).distribute(
            _records(10),
            [Assignee.from_principal(a) for a in agents],
            creator,
            AssignmentTarget.AGENT,
        )

        assert summary.total_tasks == 10
        assert [e.assignee_name for e in summary.per_assignee] == ["A", "B", "C"]
        assert [e.task_count for e in summary.per_assignee] == [4, 3, 3]

        tasks = (await session.execute(
            select(Task).where(Task.batch_id == summary.batch_id)
        )).scalars().all()
        assert len(tasks) == 10
        assert all(t.status == TaskStatus.PENDING.value for t in tasks)
        assert all(t.created_by_id == admin.id for t in tasks)
        assert all(t.created_by_kind == "admin" for t in tasks)
        assert all(t.assigned_sub_agent_id is None for t in tasks)

        first_block = {t.first_name for t in tasks if t.assigned_agent_id == agents[0].id}
        assert first_block == {"F0", "F1", "F2", "F3"}

    @pytest.mark.asyncio
    async def test_summary_covers_only_its_batch(self, session):
        admin = await _add_principal(session, "admin", "Boss")
        agents = [await _add_principal(session, "agent", name) for name in ("A", "B")]
        assignees = [Assignee.from_principal(a) for a in agents]
        creator = CreatorRef(kind=CreatorKind.ADMIN, id=admin.id)
        distributor = TaskDistributor(session)

        first = await distributor.distribute(_records(4), assignees, creator, AssignmentTarget.AGENT)
        second = await distributor.distribute(_records(4), assignees, creator, AssignmentTarget.AGENT)

        assert first.batch_id != second.batch_id
        assert [e.task_count for e in second.per_assignee] == [2, 2]

        total = (await session.execute(select(func.count(Task.id)))).scalar()
        assert total == 8

    @pytest.mark.asyncio
    async def test_zero_task_assignees_are_absent(self, session):
        admin = await _add_principal(session, "admin", "Boss")
        agents = [await _add_principal(session, "agent", name) for name in ("A", "B", "C")]
        creator = CreatorRef(kind=CreatorKind.ADMIN, id=admin.id)

        summary = await TaskDistributor(session).distribute(
            _records(2),
            [Assignee.from_principal(a) for a in agents],
            creator,
            AssignmentTarget.AGENT,
        )

        assert [e.assignee_name for e in summary.per_assignee] == ["A", "B"]

    @pytest.mark.asyncio
    async def test_sub_agent_target(self, session):
        agent = await _add_principal(session, "agent", "Lead")
        subs = [await _add_principal(session, "sub-agent", name) for name in ("S1", "S2")]
        creator = CreatorRef(kind=CreatorKind.AGENT, id=agent.id)

        summary = await TaskDistributor(session).distribute(
            _records(3),
            [Assignee.from_principal(s) for s in subs],
            creator,
            AssignmentTarget.SUB_AGENT,
        )

        assert [e.task_count for e in summary.per_assignee] == [2, 1]
        tasks = (await session.execute(select(Task))).scalars().all()
        assert all(t.assigned_agent_id is None for t in tasks)
        assert {t.assigned_sub_agent_id for t in tasks} == {s.id for s in subs}
        assert all(t.created_by_kind == "agent" for t in tasks)

    @pytest.mark.asyncio
    async def test_rejects_empty_records(self, session):
        with pytest.raises(ValidationError) as exc_info:
            await TaskDistributor(session).distribute(
                [],
                [Assignee(id="a", name="A")],
                CreatorRef(kind=CreatorKind.ADMIN, id="admin"),
                AssignmentTarget.AGENT,
            )
        assert exc_info.value.message == NO_VALID_TASKS_MESSAGE

    @pytest.mark.asyncio
    @pytest.mark.parametrize("target,message", [
        (AssignmentTarget.AGENT, "No agents available for task assignment"),
        (AssignmentTarget.SUB_AGENT, "No sub-agents available for task assignment"),
    ])
    async def test_rejects_empty_assignees(self, session, target, message):
        with pytest.raises(ValidationError) as exc_info:
            await TaskDistributor(session).distribute(
                _records(3),
                [],
                CreatorRef(kind=CreatorKind.ADMIN, id="admin"),
                target,
            )
        assert exc_info.value.message == message

        total = (await session.execute(select(func.count(Task.id)))).scalar()
        assert total == 0
