"""
Application Services Module

- Agent service: composition root that wires registry, memory, planner
  and reflection into per-session orchestrators
"""

from .agent_service import (
    AgentService,
    create_memory_store,
    run_objective,
)

__all__ = [
    # Agent Service
    "AgentService",
    "create_memory_store",
    "run_objective",
]
