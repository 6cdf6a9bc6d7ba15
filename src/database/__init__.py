"""
Database layer for the task distribution service.

This module provides:
- SQLAlchemy ORM models for principals and tasks
- Async database engine and per-request sessions
"""

from .models import (
    Base,
    Principal,
    Task,
    TaskStatus,
    CreatorKind,
    CreatorRef,
    AssignmentTarget,
)
from .async_engine import Database, create_engine, get_session_factory

__all__ = [
    "Base",
    "Principal",
    "Task",
    "TaskStatus",
    "CreatorKind",
    "CreatorRef",
    "AssignmentTarget",
    "Database",
    "create_engine",
    "get_session_factory",
]
