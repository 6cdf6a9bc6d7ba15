"""
FastAPI Routers - one module per resource.

Router modules:
- auth: registration, login, current principal
- agents: admin management of agents
- subagents: an agent's management of its sub-agents
- tasks: upload-and-distribute, listings, status updates, deletes
- health: liveness and database check
"""

from .auth import router as auth_router
from .agents import router as agents_router
from .subagents import router as subagents_router
from .tasks import router as tasks_router
from .health import router as health_router

__all__ = [
    "auth_router",
    "agents_router",
    "subagents_router",
    "tasks_router",
    "health_router",
]
