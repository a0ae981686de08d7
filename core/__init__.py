"""
Core Agent Logic Module

This module contains the brain of the agent runtime:
- Context perception: role, memories, tools and screen state
- Constraint governance: step, tool and time ceilings
- Tool execution with uniform result envelopes and execution events
- Reflection on finished runs
- Agent orchestration: the bounded Plan → Act → Reflect loop
"""

from .events import (
    EventBus,
    ExecutionEvent,
    TOOL_EXECUTED,
)

from .transcript import (
    Role,
    Transcript,
    TranscriptEntry,
)

from .governor import (
    ConstraintGovernor,
    ConstraintOverrides,
    Constraints,
    StopReason,
)

from .executor import ToolExecutor

from .perception import (
    ContextPerceiver,
    PerceptionSnapshot,
    build_system_prompt,
)

from .reflection import ReflectionEngine

from .orchestrator import (
    AgentGoal,
    AgentOrchestrator,
    AgentState,
    RunResult,
)

__all__ = [
    # Events
    "EventBus",
    "ExecutionEvent",
    "TOOL_EXECUTED",

    # Transcript
    "Role",
    "Transcript",
    "TranscriptEntry",

    # Governance
    "ConstraintGovernor",
    "ConstraintOverrides",
    "Constraints",
    "StopReason",

    # Components
    "ToolExecutor",
    "ContextPerceiver",
    "PerceptionSnapshot",
    "build_system_prompt",
    "ReflectionEngine",

    # Orchestrator
    "AgentGoal",
    "AgentOrchestrator",
    "AgentState",
    "RunResult",
]
