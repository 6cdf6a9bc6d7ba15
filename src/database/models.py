"""
SQLAlchemy ORM Models for the task distribution database.

Architecture:
- Primary Keys: UUID strings for all tables (portable across SQLite/PostgreSQL)
- Principals: one table for admins, agents and sub-agents, tagged by role;
  email is unique per role namespace
- Tasks: created in batches by upload-and-distribute; the creator reference
  is polymorphic (kind + id) and resolved at read time
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum as PyEnum
from uuid import uuid4

from sqlalchemy import (
    Column, String, Text, DateTime, ForeignKey, Index,
    UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import declarative_base, validates

from rbac.roles import Role


Base = declarative_base()


def _new_id() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMERATIONS
# =============================================================================

class TaskStatus(str, PyEnum):
    """Task processing status."""
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class CreatorKind(str, PyEnum):
    """Principal kinds that may create tasks."""
    ADMIN = Role.ADMIN.value
    AGENT = Role.AGENT.value

    @classmethod
    def for_role(cls, role: Role) -> "CreatorKind":
        return cls(Role(role).value)


class AssignmentTarget(str, PyEnum):
    """Task column that receives a distribution."""
    AGENT = "assigned_agent_id"
    SUB_AGENT = "assigned_sub_agent_id"

    @property
    def assignee_role(self) -> Role:
        return Role.AGENT if self is AssignmentTarget.AGENT else Role.SUB_AGENT


@dataclass(frozen=True)
class CreatorRef:
    """Tagged reference to the principal that created a task."""
    kind: CreatorKind
    id: str


# =============================================================================
# PRINCIPALS
# =============================================================================

class Principal(Base):
    """
    Principal - any authenticated actor (admin, agent, sub-agent).

    Sub-agents point at their owning agent through parent_agent_id. The
    reference is deliberately not a foreign key: deleting an agent leaves its
    sub-agents in place.
    """
    __tablename__ = "principals"

    id = Column(String(36), primary_key=True, default=_new_id)
    role = Column(String(20), nullable=False, index=True)

    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=False)
    mobile = Column(String(30), nullable=True)
    password_hash = Column(String(255), nullable=False, comment="bcrypt hash")

    parent_agent_id = Column(String(36), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        UniqueConstraint("role", "email", name="uq_principal_role_email"),
        CheckConstraint(
            "role IN ('admin', 'agent', 'sub-agent')",
            name="ck_principal_role",
        ),
    )

    def __repr__(self):
        return f"<Principal(id={self.id}, role={self.role}, email={self.email})>"

    @validates("email")
    def _normalize_email(self, key, value):
        return value.strip().lower() if value else value

    def to_dict(self) -> dict:
        """Public representation. Never includes the password hash."""
        data = {
            "id": self.id,
            "role": self.role,
            "name": self.name,
            "email": self.email,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if self.role != Role.ADMIN.value:
            data["mobile"] = self.mobile
        if self.role == Role.SUB_AGENT.value:
            data["parent_agent_id"] = self.parent_agent_id
        return data

    def to_summary(self) -> dict:
        return {"id": self.id, "name": self.name, "email": self.email}


# =============================================================================
# TASKS
# =============================================================================

class Task(Base):
    """
    Task - one contact row handed to an agent or sub-agent.

    Admin uploads set assigned_agent_id; agent uploads set
    assigned_sub_agent_id.
    """
    __tablename__ = "tasks"

    id = Column(String(36), primary_key=True, default=_new_id)

    first_name = Column(String(200), nullable=False)
    phone = Column(String(50), nullable=False)
    notes = Column(Text, nullable=False)

    assigned_agent_id = Column(
        String(36),
        ForeignKey("principals.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    assigned_sub_agent_id = Column(
        String(36),
        ForeignKey("principals.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Polymorphic creator reference, resolved through created_by_kind
    created_by_id = Column(String(36), nullable=False, index=True)
    created_by_kind = Column(String(20), nullable=False)

    status = Column(String(20), nullable=False, default=TaskStatus.PENDING.value, index=True)
    batch_id = Column(String(36), nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index("ix_task_creator", "created_by_id", "created_by_kind"),
        CheckConstraint(
            "status IN ('pending', 'in-progress', 'completed')",
            name="ck_task_status",
        ),
        CheckConstraint(
            "created_by_kind IN ('admin', 'agent')",
            name="ck_task_creator_kind",
        ),
        CheckConstraint(
            "assigned_agent_id IS NULL OR assigned_sub_agent_id IS NULL",
            name="ck_task_single_assignee",
        ),
    )

    def __repr__(self):
        return f"<Task(id={self.id}, status={self.status}, batch={self.batch_id})>"

    @property
    def creator(self) -> CreatorRef:
        return CreatorRef(kind=CreatorKind(self.created_by_kind), id=self.created_by_id)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "first_name": self.first_name,
            "phone": self.phone,
            "notes": self.notes,
            "status": self.status,
            "assigned_agent_id": self.assigned_agent_id,
            "assigned_sub_agent_id": self.assigned_sub_agent_id,
            "created_by_id": self.created_by_id,
            "created_by_kind": self.created_by_kind,
            "batch_id": self.batch_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
